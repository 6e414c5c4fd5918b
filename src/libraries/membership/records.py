"""Normalised membership records shared by every source adapter."""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceUnavailable(RuntimeError):
    """Raised when a membership source cannot be read completely."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class MemberRecord(BaseModel):
    """A fleet or cluster member keyed by its network address."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="IPv4/IPv6 address used as the join key")
    label: str = Field(default="", description="Display identifier for reports")
    attributes: Mapping[str, str] = Field(
        default_factory=dict, description="Tag or label map used by role filters"
    )
    liveness: str | None = Field(
        default=None, description="Health state or gossip status reported upstream"
    )

    @field_validator("address")
    @classmethod
    def _require_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("address must not be empty")
        return value

    @property
    def display(self) -> str:
        """Label shown in reports, falling back to the address."""

        return self.label or self.address


@runtime_checkable
class MembershipSource(Protocol):
    """Anything able to list the members matching its bound role filter."""

    name: str

    def fetch(self) -> Sequence[MemberRecord]:
        """Return every matching record or raise :class:`SourceUnavailable`."""
        ...


__all__ = ["MemberRecord", "MembershipSource", "SourceUnavailable"]
