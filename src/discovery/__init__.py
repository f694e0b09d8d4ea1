# src/discovery/__init__.py - v1
"""Web barcode discovery used by tier 3."""
