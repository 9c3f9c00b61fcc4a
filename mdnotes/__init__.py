"""Tools to check, index and load a corpus of markdown study notes."""

__version__ = "0.3.0"
