"""Satellite pass prediction service."""

__version__ = "0.1.0"
