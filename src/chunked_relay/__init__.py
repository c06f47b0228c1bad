"""Resumable chunked relay-transfer engine."""

__version__ = "0.1.0"

__all__ = ["__version__"]
