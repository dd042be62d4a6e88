"""
servectl - process manager for local static-file HTTP servers

Starts, stops, restarts and inspects ``python -m http.server`` instances,
keeping a small registry record and a log file per background server.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
