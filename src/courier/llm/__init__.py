"""LiteLLM-backed helpers."""
