"""Fivet: records core for a veterinary clinic."""

__version__ = "0.1.0"
