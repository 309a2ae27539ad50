"""FastAPI application for Talk With Doc."""
