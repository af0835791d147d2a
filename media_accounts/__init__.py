"""Media accounts - authentication and session service for the media platform."""

__version__ = "0.1.0"
