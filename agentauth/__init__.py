"""Credential channel selection for coding-agent launches."""

__version__ = "0.1.0"
