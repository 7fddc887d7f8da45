"""Result types reported by the migration pipeline.

Auxiliary stages (requester resolution, comment replication) never raise.
They report a StageResult instead, and the pipeline aggregates those into the
MigrationResult handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class StageOutcome(StrEnum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult(Generic[T]):
    """Outcome of one pipeline stage, with the value it produced if any."""

    outcome: StageOutcome
    value: T | None = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T | None = None) -> StageResult[T]:
        return cls(StageOutcome.SUCCESS, value)

    @classmethod
    def skipped(cls) -> StageResult[T]:
        return cls(StageOutcome.SKIPPED)

    @classmethod
    def failed(cls, error: str) -> StageResult[T]:
        return cls(StageOutcome.FAILED, errors=[error])

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": str(self.outcome), "value": self.value, "errors": list(self.errors)}


@dataclass
class CommentReplicationResult:
    """Counts collected while copying the comments of one ticket."""

    fetched: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    list_failed: bool = False

    @property
    def outcome(self) -> StageOutcome:
        if self.list_failed:
            return StageOutcome.FAILED
        if self.failed:
            return StageOutcome.DEGRADED
        return StageOutcome.SUCCESS

    def to_stage(self) -> StageResult[int]:
        return StageResult(self.outcome, self.created, list(self.errors))


@dataclass
class MigrationResult:
    """Result of migrating one ticket."""

    success: bool
    source_ticket_id: int
    target_ticket_id: int | None = None
    subject: str | None = None
    dry_run: bool = False
    error: str | None = None
    details: Any = None
    stages: dict[str, StageResult[Any]] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        """True when the ticket migrated but an auxiliary stage did not fully succeed."""
        return self.success and any(
            stage.outcome in (StageOutcome.DEGRADED, StageOutcome.FAILED) for stage in self.stages.values()
        )

    @property
    def message(self) -> str:
        if not self.success:
            return f"Failed to migrate ticket {self.source_ticket_id}: {self.error}"
        if self.dry_run:
            return f"Dry run: ticket {self.source_ticket_id} ({self.subject}) would be migrated"
        text = f"Migrated ticket {self.source_ticket_id} to {self.target_ticket_id}"
        if self.degraded:
            text += " with warnings"
        return text

    def to_dict(self) -> dict[str, Any]:
        report: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "source_ticket_id": self.source_ticket_id,
            "stages": {name: stage.to_dict() for name, stage in self.stages.items()},
        }
        if self.success:
            report["subject"] = self.subject
            if self.dry_run:
                report["dry_run"] = True
            else:
                report["target_ticket_id"] = self.target_ticket_id
        else:
            report["error"] = self.error
            report["details"] = self.details
        return report


@dataclass
class AccountStatus:
    user: str
    email: str


@dataclass
class ConnectionReport:
    """Identity of the authenticated user on each side of a migration."""

    source: AccountStatus
    target: AccountStatus

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            "source": {"user": self.source.user, "email": self.source.email},
            "target": {"user": self.target.user, "email": self.target.email},
        }
