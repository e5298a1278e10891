"""Newscast: one publisher, many display replicas, one lossy broadcast channel."""

__version__ = "0.1.0"
