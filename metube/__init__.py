"""MeTube: content-addressed video library."""

__version__ = "0.1.0"
