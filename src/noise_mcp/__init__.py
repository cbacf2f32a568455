"""Noise level history and readings over MCP."""

__version__ = "0.1.0"
