"""Membership reconciliation and verdict helpers."""

from libraries.reconcile.job import (
    DEFAULT_TIMEOUT,
    FetchOutcome,
    MembershipCheckJob,
    fetch_source,
)
from libraries.reconcile.reconciler import (
    MembershipSet,
    ReconciliationResult,
    build_membership_set,
    reconcile,
)
from libraries.reconcile.verdict import (
    DEFAULT_POLICY,
    POLICY_PRESETS,
    Severity,
    SeverityPolicy,
    Verdict,
    classify,
)

__all__ = [
    "DEFAULT_POLICY",
    "DEFAULT_TIMEOUT",
    "FetchOutcome",
    "MembershipCheckJob",
    "MembershipSet",
    "POLICY_PRESETS",
    "ReconciliationResult",
    "Severity",
    "SeverityPolicy",
    "Verdict",
    "build_membership_set",
    "classify",
    "fetch_source",
    "reconcile",
]
