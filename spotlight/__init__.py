"""SpotlightX feed ranking and trend detection service."""

__version__ = "0.1.0"
