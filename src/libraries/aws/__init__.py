"""AWS membership sources for the fleet side of a check."""

from libraries.aws.ec2 import IN_SERVICE, HealthyInstanceSource, TaggedInstanceSource

__all__ = ["HealthyInstanceSource", "IN_SERVICE", "TaggedInstanceSource"]
