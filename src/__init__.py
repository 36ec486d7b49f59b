"""Incremental image compression through the TinyPNG shrink API."""

from tinyshrink.version import __version__

__all__ = ["__version__"]
