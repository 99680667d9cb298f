"""HTTP API for colorgate."""
