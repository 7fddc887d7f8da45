"""
Helpdesk Ticket Migration Tool

Migrates tickets, with their requesters and comments, between two accounts
of a hosted helpdesk platform, deduplicating users and honouring rate limits.
"""

from __future__ import annotations

from .cli import main
from .comments import CommentReplicator
from .config import Settings, credentials_from_env
from .exceptions import (
    AuthenticationFailure,
    MalformedResponseError,
    MigrationError,
    RemoteAPIError,
    RetriesExhaustedError,
    ValidationError,
)
from .helpdesk_utils import HelpdeskClient
from .models import AccountCredentials, Comment, MigrationOptions, Ticket, TicketDraft, User
from .orchestrator import TicketMigrator
from .results import ConnectionReport, MigrationResult, StageOutcome, StageResult
from .retry import RetryPolicy
from .user_cache import UserCache
from .users import UserResolver
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "AccountCredentials",
    "AuthenticationFailure",
    "Comment",
    "CommentReplicator",
    "ConnectionReport",
    "HelpdeskClient",
    "MalformedResponseError",
    "MigrationError",
    "MigrationOptions",
    "MigrationResult",
    "RemoteAPIError",
    "RetriesExhaustedError",
    "RetryPolicy",
    "Settings",
    "StageOutcome",
    "StageResult",
    "Ticket",
    "TicketDraft",
    "TicketMigrator",
    "User",
    "UserCache",
    "UserResolver",
    "ValidationError",
    "credentials_from_env",
    "main",
    "setup_logging",
]
