"""Migration orchestrator that moves tickets between two helpdesk accounts.

The TicketMigrator class is the entry point used by the surrounding service.
It:
1. Verifies credentials against both accounts
2. Migrates one ticket at a time, with its requester and comments
3. Forwards raw API calls for the service's generic proxy
4. Owns the user cache shared by every migration it runs

Migration Flow
--------------
A ticket migration is a linear pipeline. Each stage runs at most once and
the pipeline never steps back:

Stage 1: Fetch
    - Read the ticket from the source account
    - Failure is fatal: the result is marked unsuccessful

Stage 2: ResolveRequester (when migrate_users)
    - Map the requester to a target user, creating it if needed
    - A dry run only searches the target and never creates the user
    - Failure is tolerated: the ticket is created without a requester

Stage 3: BuildDraft
    - Copy subject, description, status, priority, type and tags
    - Attach the resolved requester id, if any

Stage 4: DryRunCheck (when dry_run)
    - Stop here and report the source ticket; nothing is written

Stage 5: Create
    - Create the ticket in the target account
    - Failure is fatal

Stage 6: ReplicateComments (when migrate_comments)
    - Copy human-written comments in order
    - Failures are tolerated and reported per comment

Every remote call of every stage goes through the RetryPolicy.

Error Handling
--------------
- Fatal stages (fetch, create) produce MigrationResult(success=False) with
  the remote error payload in ``details``
- Auxiliary stages report DEGRADED/FAILED StageResults on a successful result
- Nothing is rolled back: a created ticket stays even if its comments fail
- Malformed input (missing credentials, non-API proxy path) raises
  ValidationError before any remote call
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from . import helpdesk_utils as hdu
from .comments import DEFAULT_COMMENT_DELAY, CommentReplicator
from .exceptions import AuthenticationFailure, MigrationError, ValidationError
from .models import MigrationOptions, Ticket
from .results import AccountStatus, ConnectionReport, MigrationResult, StageResult
from .retry import RetryPolicy
from .user_cache import UserCache
from .users import UserResolver

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import Settings
    from .models import AccountCredentials
    from .protocols import ClientFactory

logger = logging.getLogger(__name__)


def _error_payload(error: Exception) -> Any:
    """Raw remote error body carried by an exception, for diagnostics."""
    payload = getattr(error, "payload", None)
    return payload if payload is not None else str(error)


class TicketMigrator:
    """Orchestrates ticket migrations between helpdesk accounts.

    Usage:
        migrator = TicketMigrator()
        report = migrator.test_connections(source, target)
        result = migrator.migrate_ticket(42, source, target, MigrationOptions(dry_run=True))

    One instance is meant to live as long as the service process. Its user
    cache is shared by every migration it runs, including concurrent ones.
    """

    retry_policy: RetryPolicy
    user_cache: UserCache

    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        retry_policy: RetryPolicy | None = None,
        user_cache: UserCache | None = None,
        comment_delay: float = DEFAULT_COMMENT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the migrator.

        Args:
            client_factory: Opens an API client for an account (defaults to HelpdeskClient)
            retry_policy: Policy wrapping every remote call
            user_cache: Cache of resolved users, shared across migrations
            comment_delay: Pause between two comment writes, in seconds
            sleep: Function used for every wait (injectable for tests)
        """
        self._client_factory: ClientFactory = client_factory or hdu.get_client
        self.retry_policy = retry_policy or RetryPolicy(sleep=sleep)
        self.user_cache = user_cache if user_cache is not None else UserCache()
        self.user_resolver = UserResolver(self._client_factory, self.retry_policy, self.user_cache)
        self.comment_replicator = CommentReplicator(
            self._client_factory, self.retry_policy, comment_delay=comment_delay, sleep=sleep
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, user_cache: UserCache | None = None) -> TicketMigrator:
        """Build a migrator whose clients and retry policy follow ``settings``."""
        return cls(
            client_factory=hdu.client_factory(base_domain=settings.base_domain, timeout=settings.timeout),
            retry_policy=RetryPolicy(settings.max_attempts, rate_limit_wait=settings.rate_limit_wait),
            user_cache=user_cache,
            comment_delay=settings.comment_delay,
        )

    def test_connections(self, source: AccountCredentials, target: AccountCredentials) -> ConnectionReport:
        """Check that both sets of credentials authenticate.

        Both accounts are always tried, so the failure names every side that failed.

        Raises:
            AuthenticationFailure: If either account could not be reached
        """
        source.validate()
        target.validate()

        statuses: dict[str, AccountStatus] = {}
        failures: dict[str, Any] = {}
        for side, credentials in (("source", source), ("target", target)):
            try:
                with self._client_factory(credentials) as client:
                    me = self.retry_policy.execute(
                        client.get_current_user, description=f"authenticate to {credentials.subdomain}"
                    )
                statuses[side] = AccountStatus(user=me.get("name") or "", email=me.get("email") or "")
                logger.info(f"{side.capitalize()} API access validated for {credentials.subdomain}")
            except MigrationError as e:
                logger.warning(f"{side.capitalize()} API access failed for {credentials.subdomain}: {e}")
                failures[side] = _error_payload(e)

        if failures:
            msg = f"Authentication failed for {' and '.join(failures)} account"
            raise AuthenticationFailure(msg, failures=failures)

        return ConnectionReport(source=statuses["source"], target=statuses["target"])

    def migrate_ticket(
        self,
        ticket_id: int,
        source: AccountCredentials,
        target: AccountCredentials,
        options: MigrationOptions | None = None,
    ) -> MigrationResult:
        """Migrate one ticket from the source to the target account.

        Args:
            ticket_id: Id of the ticket in the source account
            source: Credentials of the account to read from
            target: Credentials of the account to write to
            options: Which stages to run (defaults to a full migration)

        Returns:
            MigrationResult describing the outcome of every stage

        Raises:
            ValidationError: If either set of credentials is incomplete
        """
        options = options or MigrationOptions()
        source.validate()
        target.validate()
        stages: dict[str, StageResult[Any]] = {}

        logger.info(f"Migrating ticket {ticket_id} from {source.subdomain} to {target.subdomain}")

        # Stage 1: Fetch
        try:
            with self._client_factory(source) as source_client:
                ticket = Ticket.from_api(
                    self.retry_policy.execute(
                        lambda: source_client.get_ticket(ticket_id), description=f"fetch ticket {ticket_id}"
                    )
                )
        except (MigrationError, KeyError) as e:
            return self._failed(ticket_id, "fetch", e, stages)
        stages["fetch"] = StageResult.success(ticket.id)

        # Stage 2: ResolveRequester
        requester_id: int | None = None
        if options.migrate_users and ticket.requester_id is not None:
            resolution = self.user_resolver.resolve(ticket.requester_id, source, target, dry_run=options.dry_run)
            requester_id = resolution.value
            stages["resolve_requester"] = resolution
        else:
            stages["resolve_requester"] = StageResult.skipped()

        # Stage 3: BuildDraft
        draft = ticket.to_draft(requester_id=requester_id)

        # Stage 4: DryRunCheck
        if options.dry_run:
            logger.info(f"Dry run: ticket {ticket.id} ({ticket.subject}) not written to {target.subdomain}")
            return MigrationResult(
                success=True, source_ticket_id=ticket.id, subject=ticket.subject, dry_run=True, stages=stages
            )

        # Stage 5: Create
        try:
            with self._client_factory(target) as target_client:
                created = self.retry_policy.execute(
                    lambda: target_client.create_ticket(draft.to_api()),
                    description=f"create ticket from {ticket.id}",
                )
            target_ticket_id: int = created["id"]
        except (MigrationError, KeyError) as e:
            return self._failed(ticket_id, "create", e, stages)
        stages["create"] = StageResult.success(target_ticket_id)
        logger.info(f"Created ticket {target_ticket_id} in {target.subdomain} from ticket {ticket.id}")

        # Stage 6: ReplicateComments
        if options.migrate_comments:
            replication = self.comment_replicator.replicate(ticket.id, target_ticket_id, source, target)
            stages["replicate_comments"] = replication.to_stage()
        else:
            stages["replicate_comments"] = StageResult.skipped()

        result = MigrationResult(
            success=True,
            source_ticket_id=ticket.id,
            target_ticket_id=target_ticket_id,
            subject=ticket.subject,
            stages=stages,
        )
        logger.info(result.message)
        return result

    def proxy_request(self, method: str, path: str, body: Any, credentials: AccountCredentials) -> Any:
        """Forward a raw API call to an account and return the decoded response body.

        Raises:
            ValidationError: If the path is outside the versioned API or credentials are incomplete
            RetriesExhaustedError: If the call kept failing
        """
        if not path.startswith(hdu.API_PREFIX):
            msg = f"Invalid helpdesk API path: {path!r} (must start with {hdu.API_PREFIX})"
            raise ValidationError(msg)
        credentials.validate()

        with self._client_factory(credentials) as client:
            return self.retry_policy.execute(
                lambda: client.request(method, path, json=body), description=f"{method.upper()} {path}"
            )

    @staticmethod
    def _failed(
        ticket_id: int, stage: str, error: Exception, stages: dict[str, StageResult[Any]]
    ) -> MigrationResult:
        logger.error(f"Migration of ticket {ticket_id} failed at {stage}: {error}")
        stages[stage] = StageResult.failed(str(error))
        return MigrationResult(
            success=False,
            source_ticket_id=ticket_id,
            error=str(error),
            details=_error_payload(error),
            stages=stages,
        )
