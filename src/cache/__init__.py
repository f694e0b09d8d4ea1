# src/cache/__init__.py - v1
"""Identity and dimension caches over pluggable document stores."""
