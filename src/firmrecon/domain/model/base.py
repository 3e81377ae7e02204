"""
Base building blocks:
identity, creation timestamps, redirect-on-merge resolution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


def new_id() -> UUID:
    return uuid4()


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain."""

    id: UUID = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def resolved_id(self) -> UUID:
        """Default: no redirection semantics"""
        return self.id


@dataclass(eq=False, kw_only=True)
class RedirectableEntity(Entity):
    """Soft-deletable by pointing at a surviving entity. Never physically removed."""

    merged_into: UUID | None = None

    @property
    def is_merged(self) -> bool:
        return self.merged_into is not None

    @property
    def resolved_id(self) -> UUID:
        """Return the surviving id if merged, else own id."""
        return self.merged_into or self.id
