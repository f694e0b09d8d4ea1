# src/resolution/__init__.py - v1
"""Multi-tier resolution orchestrator."""
