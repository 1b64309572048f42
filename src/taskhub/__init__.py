"""TaskHub: REST API for a single collection of task records."""

__version__ = "1.0.0"
