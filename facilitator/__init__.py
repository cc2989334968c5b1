"""Streaming completion client for action-learning facilitation workshops."""

__version__ = "0.1.0"
