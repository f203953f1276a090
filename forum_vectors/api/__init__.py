"""Diagnostics API module."""
