"""Data models exchanged between the helpdesk client and the migration pipeline.

These models are the normalized form of the helpdesk REST payloads. Source
entities are read-only; the pipeline derives a TicketDraft from a Ticket and
submits that to the target account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from .exceptions import ValidationError

# Comment channels written by integrations rather than by a person
SYSTEM_COMMENT_CHANNELS: frozenset[str] = frozenset({"api", "system"})


@dataclass(frozen=True)
class AccountCredentials:
    """Identifies one helpdesk account. Supplied per call and never persisted."""

    subdomain: str
    email: str
    token: str = field(repr=False)

    @property
    def api_username(self) -> str:
        """Basic auth username for API token authentication."""
        return f"{self.email}/token"

    def validate(self) -> None:
        missing = [name for name in ("subdomain", "email", "token") if not getattr(self, name, "").strip()]
        if missing:
            msg = f"Missing account credentials: {', '.join(missing)}"
            raise ValidationError(msg)


@dataclass(frozen=True)
class MigrationOptions:
    """Which pipeline stages run for one ticket migration."""

    dry_run: bool = False
    migrate_users: bool = True
    migrate_comments: bool = True


class UserCacheKey(NamedTuple):
    source_user_id: int
    source_subdomain: str
    target_subdomain: str


@dataclass
class User:
    id: int
    name: str
    email: str
    role: str = "end-user"

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> User:
        return cls(
            id=payload["id"],
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            role=payload.get("role") or "end-user",
        )


def target_role(role: str) -> str:
    """Role a migrated user gets in the target account.

    Migration never creates new admins: ``admin`` becomes ``agent``, every
    other role is kept.
    """
    return "agent" if role == "admin" else role


@dataclass
class Comment:
    """A comment on a ticket.

    The channel comes from the comment's ``via`` block and tells whether a
    person wrote the comment or an integration generated it.
    """

    body: str
    public: bool = True
    channel: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Comment:
        via = payload.get("via") or {}
        return cls(
            body=payload.get("body") or "",
            public=bool(payload.get("public", True)),
            channel=via.get("channel") or "",
        )

    @property
    def is_system(self) -> bool:
        return self.channel in SYSTEM_COMMENT_CHANNELS


@dataclass
class TicketDraft:
    """The subset of ticket fields submitted when creating a ticket in the target."""

    subject: str
    description: str
    status: str | None = None
    priority: str | None = None
    type: str | None = None
    tags: list[str] = field(default_factory=list)
    requester_id: int | None = None

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "subject": self.subject,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "tags": list(self.tags),
            "requester_id": self.requester_id,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass
class Ticket:
    """A ticket as read from the source account."""

    id: int
    subject: str
    description: str
    status: str | None = None
    priority: str | None = None
    type: str | None = None
    tags: list[str] = field(default_factory=list)
    requester_id: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Ticket:
        return cls(
            id=payload["id"],
            subject=payload.get("subject") or "",
            description=payload.get("description") or "",
            status=payload.get("status"),
            priority=payload.get("priority"),
            type=payload.get("type"),
            tags=list(payload.get("tags") or []),
            requester_id=payload.get("requester_id"),
        )

    def to_draft(self, *, requester_id: int | None = None) -> TicketDraft:
        return TicketDraft(
            subject=self.subject,
            description=self.description,
            status=self.status,
            priority=self.priority,
            type=self.type,
            tags=list(self.tags),
            requester_id=requester_id,
        )
