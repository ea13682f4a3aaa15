"""HTTP and WebSocket surface for Beacon."""
