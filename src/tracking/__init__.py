# src/tracking/__init__.py - v1
"""Observability event sinks."""
