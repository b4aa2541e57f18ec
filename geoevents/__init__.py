"""
Geo Event Extractor.

Turns loosely structured, tag-based relay events into normalized location
events suitable for mapping.
"""

__version__ = "0.1.0"
