"""Membership check job: fetch both sides, reconcile, classify."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from time import monotonic, perf_counter
from typing import Sequence

import structlog

from libraries.membership.records import (
    MemberRecord,
    MembershipSource,
    SourceUnavailable,
)
from libraries.reconcile.reconciler import reconcile
from libraries.reconcile.verdict import (
    DEFAULT_POLICY,
    SeverityPolicy,
    Verdict,
    classify,
)

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class FetchOutcome:
    """Result of reading one source: either records or the failure."""

    source: str
    records: Sequence[MemberRecord] = field(default_factory=tuple)
    error: SourceUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fetch_source(source: MembershipSource) -> FetchOutcome:
    """Run ``source.fetch()`` and capture a :class:`SourceUnavailable` as a value."""

    try:
        records = source.fetch()
    except SourceUnavailable as exc:
        log.error("membership.check.source_failed", source=source.name, error=str(exc))
        return FetchOutcome(source=source.name, error=exc)
    return FetchOutcome(source=source.name, records=tuple(records))


class MembershipCheckJob:
    """Compare a fleet source against a cluster source under one deadline."""

    def __init__(
        self,
        *,
        fleet_source: MembershipSource,
        cluster_source: MembershipSource,
        policy: SeverityPolicy = DEFAULT_POLICY,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if timeout <= 0:
            msg = "timeout must be greater than zero"
            raise ValueError(msg)

        self.fleet_source = fleet_source
        self.cluster_source = cluster_source
        self.policy = policy
        self.timeout = timeout

    def _fetch_all(self) -> tuple[FetchOutcome, FetchOutcome]:
        sources = (self.fleet_source, self.cluster_source)
        results: dict[int, FetchOutcome | Exception] = {}

        def _capture(index: int, source: MembershipSource) -> None:
            try:
                results[index] = fetch_source(source)
            except Exception as exc:  # re-raised by the caller
                results[index] = exc

        # Daemon workers: a fetch still running at the deadline must not block exit.
        threads = [
            threading.Thread(
                target=_capture,
                args=(index, source),
                name=f"membercheck-{index}",
                daemon=True,
            )
            for index, source in enumerate(sources)
        ]
        for thread in threads:
            thread.start()
        deadline = monotonic() + self.timeout
        for thread in threads:
            thread.join(max(0.0, deadline - monotonic()))

        outcomes: list[FetchOutcome] = []
        for index, source in enumerate(sources):
            result = results.get(index)
            if isinstance(result, Exception):
                raise result
            if result is None:
                error = SourceUnavailable(
                    source.name, f"timed out after {self.timeout:g}s"
                )
                log.error("membership.check.source_timeout", source=source.name)
                result = FetchOutcome(source=source.name, error=error)
            outcomes.append(result)
        return outcomes[0], outcomes[1]

    def run(self) -> Verdict:
        started = perf_counter()
        fleet, cluster = self._fetch_all()

        for outcome in (fleet, cluster):
            if outcome.error is not None:
                return Verdict.unknown(outcome.error)

        verdict = classify(reconcile(fleet.records, cluster.records), self.policy)
        log.info(
            "membership.check.complete",
            fleet_source=fleet.source,
            cluster_source=cluster.source,
            severity=verdict.severity.value,
            runtime_seconds=round(perf_counter() - started, 3),
        )
        return verdict


__all__ = ["DEFAULT_TIMEOUT", "FetchOutcome", "MembershipCheckJob", "fetch_source"]
