"""Thin read-only client for the Consul HTTP API.

Only the two endpoints needed for membership checks are exposed: the catalog
service listing and the local agent's gossip member list.
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import quote

import requests
import structlog
from requests import Session

log = structlog.get_logger(__name__)

DEFAULT_ADDRESS = "127.0.0.1:8500"
DEFAULT_TIMEOUT = 10.0


class ConsulError(RuntimeError):
    """Raised when communication with the Consul API fails."""


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


class ConsulClient:
    """Helper for the handful of Consul endpoints used by membership checks."""

    def __init__(
        self,
        address: str = DEFAULT_ADDRESS,
        *,
        token: str | None = None,
        datacenter: str | None = None,
        scheme: str = "http",
        timeout: float = DEFAULT_TIMEOUT,
        session: Session | None = None,
    ) -> None:
        if not address:
            raise ValueError("address must be provided")

        if "://" in address:
            self.base_url = address.rstrip("/")
        else:
            self.base_url = f"{scheme}://{address.rstrip('/')}"
        self.datacenter = datacenter
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        if token:
            self._session.headers["X-Consul-Token"] = token

    @classmethod
    def from_env(
        cls,
        *,
        address: str | None = None,
        token: str | None = None,
        datacenter: str | None = None,
        session: Session | None = None,
    ) -> "ConsulClient":
        """Build a client honouring the standard ``CONSUL_HTTP_*`` variables."""

        scheme = "https" if _env_flag(os.environ.get("CONSUL_HTTP_SSL")) else "http"
        return cls(
            address or os.environ.get("CONSUL_HTTP_ADDR") or DEFAULT_ADDRESS,
            token=token or os.environ.get("CONSUL_HTTP_TOKEN") or None,
            datacenter=datacenter,
            scheme=scheme,
            session=session,
        )

    def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        scoped: bool = True,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {key: value for key, value in (params or {}).items() if value}
        if scoped and self.datacenter:
            query.setdefault("dc", self.datacenter)

        log.debug("consul.request", url=url, params=query)
        try:
            response = self._session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("consul.request_failed", url=url, error=str(exc))
            raise ConsulError(f"GET {url} failed: {exc}") from exc

        if not response.ok:
            log.error(
                "consul.request_failed",
                url=url,
                status=response.status_code,
                text=response.text,
            )
            raise ConsulError(
                f"GET {url} failed with {response.status_code}: {response.text.strip()}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ConsulError(f"GET {url} returned invalid JSON") from exc

    @staticmethod
    def _expect_list(payload: Any, endpoint: str) -> list[dict[str, Any]]:
        if payload is None:
            return []
        if not isinstance(payload, list) or not all(
            isinstance(item, dict) for item in payload
        ):
            raise ConsulError(f"Unexpected payload structure returned by {endpoint}")
        return payload

    def catalog_service(self, service: str, tag: str | None = None) -> list[dict[str, Any]]:
        """Return catalog entries for *service*, optionally restricted to *tag*."""

        if not service:
            raise ValueError("service must be provided")
        endpoint = f"v1/catalog/service/{quote(service, safe='')}"
        payload = self._get(endpoint, params={"tag": tag})
        return self._expect_list(payload, endpoint)

    def agent_members(self) -> list[dict[str, Any]]:
        """Return the gossip pool members known to the local agent."""

        endpoint = "v1/agent/members"
        # Agent endpoints describe the local gossip pool and take no dc.
        return self._expect_list(self._get(endpoint, scoped=False), endpoint)


__all__ = ["ConsulClient", "ConsulError", "DEFAULT_ADDRESS"]
