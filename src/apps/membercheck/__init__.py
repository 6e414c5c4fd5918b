"""Fleet versus service-discovery membership check."""

from libraries import __version__

__all__ = ["__version__"]
