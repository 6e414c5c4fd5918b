"""Consul integration used for cluster membership checks."""

from libraries.consul.client import ConsulClient, ConsulError
from libraries.consul.sources import CatalogServiceSource, GossipMemberSource

__all__ = [
    "CatalogServiceSource",
    "ConsulClient",
    "ConsulError",
    "GossipMemberSource",
]
