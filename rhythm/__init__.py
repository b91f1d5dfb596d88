"""Activity pattern and suggestion engine for infant-care logs."""

__version__ = "0.1.0"
