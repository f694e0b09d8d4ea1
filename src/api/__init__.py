# src/api/__init__.py - v1
"""Service facade and result models."""
