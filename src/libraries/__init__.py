"""Runtime package for the membercheck toolkit."""

from . import aws, consul, membership, reconcile

__all__ = [
    "__version__",
    "aws",
    "consul",
    "membership",
    "reconcile",
]

__version__ = "0.1.0"
