"""Sales Desk commission back office."""

__version__ = "1.0.0"
