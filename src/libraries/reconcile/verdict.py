"""Turn reconciliation results into monitoring verdicts."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from libraries.membership.records import MemberRecord
from libraries.reconcile.reconciler import ReconciliationResult


class Severity(str, Enum):
    """Monitoring-plugin severities, ordered by exit code."""

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]

    @property
    def status(self) -> str:
        return self.value.upper()


_EXIT_CODES = {
    Severity.OK: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
    Severity.UNKNOWN: 3,
}


class SeverityPolicy(BaseModel):
    """Which drift directions are checked and how severe each one is."""

    model_config = ConfigDict(frozen=True)

    fleet_only: Severity = Severity.CRITICAL
    cluster_only: Severity = Severity.WARNING
    check_fleet_only: bool = True
    check_cluster_only: bool = True

    @classmethod
    def preset(cls, name: str) -> "SeverityPolicy":
        try:
            return POLICY_PRESETS[name.lower()]
        except KeyError:
            available = ", ".join(sorted(POLICY_PRESETS))
            raise ValueError(
                f"Unknown severity policy '{name}'. Available policies: {available}."
            ) from None


DEFAULT_POLICY = SeverityPolicy()
POLICY_PRESETS = {
    "asymmetric": DEFAULT_POLICY,
    "strict": SeverityPolicy(cluster_only=Severity.CRITICAL),
}


class Verdict(BaseModel):
    """Severity and one-line message reported for a check run."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    message: str

    @property
    def exit_code(self) -> int:
        return self.severity.exit_code

    @classmethod
    def unknown(cls, error: object) -> "Verdict":
        return cls(severity=Severity.UNKNOWN, message=str(error))


def _format(values: Sequence[str]) -> str:
    return "[" + " ".join(values) + "]"


def _fleet_message(records: Sequence[MemberRecord]) -> str:
    addresses = [record.address for record in records]
    return f"{len(addresses)} instance(s) left from cluster: {_format(addresses)}"


def _cluster_message(records: Sequence[MemberRecord]) -> str:
    members = [record.display for record in records]
    return f"{len(members)} member(s) not properly tagged: {_format(members)}"


def classify(
    result: ReconciliationResult,
    policy: SeverityPolicy = DEFAULT_POLICY,
) -> Verdict:
    """Return the verdict for *result*; fleet-side drift is reported first."""

    if policy.check_fleet_only and result.only_in_fleet:
        return Verdict(
            severity=policy.fleet_only, message=_fleet_message(result.only_in_fleet)
        )
    if policy.check_cluster_only and result.only_in_cluster:
        return Verdict(
            severity=policy.cluster_only,
            message=_cluster_message(result.only_in_cluster),
        )
    return Verdict(severity=Severity.OK, message="OK")


__all__ = [
    "DEFAULT_POLICY",
    "POLICY_PRESETS",
    "Severity",
    "SeverityPolicy",
    "Verdict",
    "classify",
]
