"""Tasuke - team task management backend with deadline-driven scheduling."""

__version__ = "1.0.0"
