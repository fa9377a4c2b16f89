"""Administration tool for a distributed download-mirror directory."""

__version__ = "1.0.0"
