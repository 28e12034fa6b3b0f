"""Synchronized slides + recording pages for a conference-talk archive."""

__version__ = "0.1.0"
