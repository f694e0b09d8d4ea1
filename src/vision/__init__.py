# src/vision/__init__.py - v1
"""Visual analysis capability."""
