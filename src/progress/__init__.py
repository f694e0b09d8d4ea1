# src/progress/__init__.py - v1
"""Progress sessions and rate-limited event delivery."""
