"""Address-keyed membership records and the source adapter contract."""

from libraries.membership.records import (
    MemberRecord,
    MembershipSource,
    SourceUnavailable,
)

__all__ = ["MemberRecord", "MembershipSource", "SourceUnavailable"]
