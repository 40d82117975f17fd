"""PhrasePilot: text rephrasing through interchangeable text-generation backends."""

__version__ = "0.1.0"
