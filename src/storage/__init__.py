# src/storage/__init__.py - v1
"""Relational product repository."""
