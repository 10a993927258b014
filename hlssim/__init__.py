"""Synthetic live HLS origin for exercising players and CDNs."""

__version__ = "0.1.0"
