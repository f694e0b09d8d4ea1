# src/llm/__init__.py - v1
"""Vision LLM clients and retry helpers."""
