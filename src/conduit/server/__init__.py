"""Listener boundary: ASGI translation, response sending, and serving."""
