"""GitHub repository mirroring and CI build metrics extraction."""

__version__ = "0.3.0"
