"""MicroFlash scheduling and session engine."""

from .version import __version__

__all__ = ["__version__"]
