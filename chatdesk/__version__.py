"""Package version, reported by the API and the startup log line."""

__version__ = "0.4.0"
