"""HTTP/WebSocket surface and the autonomous game runners."""
