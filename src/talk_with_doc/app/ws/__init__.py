"""WebSocket endpoints for Talk With Doc."""
