"""Consul membership sources: catalog services and gossip members."""

from __future__ import annotations

from typing import Any, Callable

import structlog
from pydantic import ValidationError

from libraries.consul.client import ConsulClient, ConsulError
from libraries.membership.records import MemberRecord, SourceUnavailable

log = structlog.get_logger(__name__)

# Serf member status codes as reported by /v1/agent/members.
SERF_STATUS = {0: "none", 1: "alive", 2: "leaving", 3: "left", 4: "failed"}
ALIVE = "alive"


def _node_label(node: str | None, address: str) -> str:
    return f"{node}({address})" if node else address


def _read(
    source: str,
    call: Callable[[], list[dict[str, Any]]],
) -> list[dict[str, Any]]:
    try:
        return call()
    except ConsulError as exc:
        raise SourceUnavailable(source, str(exc)) from exc


class CatalogServiceSource:
    """Nodes registered in the Consul catalog for a service and optional tag."""

    def __init__(
        self,
        service: str,
        tag: str | None = None,
        *,
        client: ConsulClient | None = None,
    ) -> None:
        if not service:
            raise ValueError("service must be provided")
        self.service = service
        self.tag = tag or None
        self._client = client
        self.name = f"consul(service:{service}" + (f", tag:{tag})" if tag else ")")

    def fetch(self) -> list[MemberRecord]:
        client = self._client or ConsulClient.from_env()
        entries = _read(self.name, lambda: client.catalog_service(self.service, self.tag))

        records: list[MemberRecord] = []
        try:
            for entry in entries:
                address = entry.get("Address")
                if not address:
                    log.debug("consul.catalog.entry_without_address", node=entry.get("Node"))
                    continue
                attributes = {str(tag): "" for tag in entry.get("ServiceTags") or []}
                attributes.update(
                    {str(k): str(v) for k, v in (entry.get("NodeMeta") or {}).items()}
                )
                records.append(
                    MemberRecord(
                        address=address,
                        label=_node_label(entry.get("Node"), address),
                        attributes=attributes,
                    )
                )
        except (AttributeError, TypeError, ValidationError) as exc:
            raise SourceUnavailable(self.name, f"malformed response: {exc}") from exc

        log.info(
            "consul.catalog.complete",
            service=self.service,
            tag=self.tag,
            members=len(records),
        )
        return records


class GossipMemberSource:
    """Alive gossip members whose serf tags contain ``key=value``."""

    def __init__(
        self,
        tag_key: str,
        tag_value: str,
        *,
        client: ConsulClient | None = None,
    ) -> None:
        if not tag_key:
            raise ValueError("tag_key must be provided")
        if not tag_value:
            raise ValueError("tag_value must be provided")
        self.tag_key = tag_key
        self.tag_value = tag_value
        self._client = client
        self.name = f"consul(members:{tag_key}={tag_value})"

    def fetch(self) -> list[MemberRecord]:
        client = self._client or ConsulClient.from_env()
        members = _read(self.name, client.agent_members)

        records: list[MemberRecord] = []
        skipped = 0
        try:
            for member in members:
                status = SERF_STATUS.get(member.get("Status"), "unknown")
                tags = {str(k): str(v) for k, v in (member.get("Tags") or {}).items()}
                address = member.get("Addr")
                if status != ALIVE or tags.get(self.tag_key) != self.tag_value or not address:
                    skipped += 1
                    continue
                records.append(
                    MemberRecord(
                        address=address,
                        label=_node_label(member.get("Name"), address),
                        attributes=tags,
                        liveness=status,
                    )
                )
        except (AttributeError, TypeError, ValidationError) as exc:
            raise SourceUnavailable(self.name, f"malformed response: {exc}") from exc

        log.info(
            "consul.members.complete",
            tag=self.tag_key,
            value=self.tag_value,
            members=len(records),
            skipped=skipped,
        )
        return records


__all__ = ["ALIVE", "CatalogServiceSource", "GossipMemberSource"]
