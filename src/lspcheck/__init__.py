"""lspcheck - Liskov substitution checks for Python classes."""

__version__ = "0.1.0"
