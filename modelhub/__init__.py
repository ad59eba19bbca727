"""ModelHub: local catalog, download and activation manager for hub models."""

__version__ = "0.1.0"
