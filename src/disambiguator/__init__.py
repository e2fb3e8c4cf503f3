"""Disambiguator - entity disambiguation and merge decisions for network graphs."""

__version__ = "0.1.0"
