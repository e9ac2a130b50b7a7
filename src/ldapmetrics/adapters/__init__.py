"""Adapters implementing core ports and exposing metrics."""
