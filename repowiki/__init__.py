"""repowiki: AI-generated documentation for source repositories."""

__version__ = "1.0.0"
