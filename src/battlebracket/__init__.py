"""battlebracket: single-elimination tournaments for monster-team battles."""

__version__ = "0.1.0"
