"""Semantic retrieval and recommendation subsystem for the forum."""

__version__ = "0.1.0"
