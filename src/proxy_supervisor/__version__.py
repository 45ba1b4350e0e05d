"""Version information for proxy-liveness-supervisor."""

__version__ = "0.1.0"
