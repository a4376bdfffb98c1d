"""Vitruvi: construction-site monitoring backend."""

__version__ = "0.3.0"
