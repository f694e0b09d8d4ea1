# src/__init__.py - v1
"""Multi-tier retail product identification."""

from shelfscan.version import __version__

__all__ = ["__version__"]
