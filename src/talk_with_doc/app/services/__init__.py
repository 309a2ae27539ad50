"""Service wiring for the Talk With Doc server."""
