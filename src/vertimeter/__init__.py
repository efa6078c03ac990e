"""Vertimeter: camera-based vertical jump measurement."""

__version__ = "0.1.0"
