"""Package marker for the analytics API service."""

from version import __version__

__all__ = ["__version__"]
