"""Address-keyed comparison of fleet and cluster membership."""

from __future__ import annotations

from typing import Dict, Iterable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict

from libraries.membership.records import MemberRecord

log = structlog.get_logger(__name__)

MembershipSet = Dict[str, MemberRecord]


class ReconciliationResult(BaseModel):
    """Members seen by only one side of the comparison."""

    model_config = ConfigDict(frozen=True)

    only_in_fleet: Sequence[MemberRecord] = ()
    only_in_cluster: Sequence[MemberRecord] = ()
    fleet_size: int = 0
    cluster_size: int = 0

    @property
    def in_sync(self) -> bool:
        return not self.only_in_fleet and not self.only_in_cluster


def build_membership_set(records: Iterable[MemberRecord]) -> MembershipSet:
    """Index *records* by address; a repeated address keeps the last record."""

    members: MembershipSet = {}
    for record in records:
        previous = members.get(record.address)
        if previous is not None:
            log.debug(
                "membership.duplicate_address",
                address=record.address,
                replaced=previous.label,
                kept=record.label,
            )
        members[record.address] = record
    return members


def _missing_from(members: MembershipSet, other: MembershipSet) -> list[MemberRecord]:
    return sorted(
        (record for address, record in members.items() if address not in other),
        key=lambda record: record.address,
    )


def reconcile(
    fleet_records: Iterable[MemberRecord],
    cluster_records: Iterable[MemberRecord],
) -> ReconciliationResult:
    """Return the records present on one side only, in address order."""

    fleet_set = build_membership_set(fleet_records)
    cluster_set = build_membership_set(cluster_records)

    result = ReconciliationResult(
        only_in_fleet=_missing_from(fleet_set, cluster_set),
        only_in_cluster=_missing_from(cluster_set, fleet_set),
        fleet_size=len(fleet_set),
        cluster_size=len(cluster_set),
    )
    log.info(
        "membership.reconcile.complete",
        fleet=result.fleet_size,
        cluster=result.cluster_size,
        only_in_fleet=len(result.only_in_fleet),
        only_in_cluster=len(result.only_in_cluster),
    )
    return result


__all__ = [
    "MembershipSet",
    "ReconciliationResult",
    "build_membership_set",
    "reconcile",
]
