# src/logging/__init__.py - v1
"""Structured logging setup."""
