"""Find and replace across notebook cells."""

__version__ = "0.1.0"
