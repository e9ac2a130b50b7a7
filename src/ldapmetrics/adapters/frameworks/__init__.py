"""ASGI exposition of the metrics registry."""
