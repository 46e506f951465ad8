"""Courier bridges encrypted chat conversations and a hosted AI agent."""

__version__ = "0.1.0"
