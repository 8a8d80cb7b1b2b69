"""Shared helpers: logging, time, numeric and CLI utilities."""
