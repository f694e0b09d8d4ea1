# src/resolution/tiers/__init__.py - v1
"""Resolution tiers 1-4."""
