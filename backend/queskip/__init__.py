"""QueSkip - skip-the-line queue backend."""

__version__ = "1.0.0"
