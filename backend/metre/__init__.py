"""Métré: voice site-visit transcription and construction task extraction."""

__version__ = "0.1.0"
