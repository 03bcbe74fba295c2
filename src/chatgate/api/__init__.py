"""HTTP and WebSocket surface of chatgate."""
