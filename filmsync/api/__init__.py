"""HTTP API for the film sync studio."""
