"""CLI commands for Beacon.

Provides command-line interface using Typer:
- beacon serve: Run the API server
- beacon sweep-cache: Remove expired cache entries once

Usage:
    beacon --help
    beacon serve --port 3001
    beacon sweep-cache --backend redis
"""

import typer

from beacon.cli.cache_cmd import app as cache_app
from beacon.cli.serve import app as serve_app

# Main CLI application
app = typer.Typer(
    name="beacon",
    help="Beacon: real-time disaster coordination backend",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(cache_app, name="sweep-cache")


@app.callback()
def callback() -> None:
    """Beacon: real-time disaster coordination backend."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
