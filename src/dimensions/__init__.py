# src/dimensions/__init__.py - v1
"""Five-dimension product analysis."""
