"""API routers for Beacon."""
