"""Dockyard - Docker hosts on Amazon EC2."""

__version__ = "0.1.0"
