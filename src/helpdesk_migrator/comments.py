"""
Replication of ticket comments from the source to the target account.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Final

from .exceptions import MigrationError
from .models import Comment
from .results import CommentReplicationResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from .models import AccountCredentials
    from .protocols import ClientFactory, HelpdeskAPI
    from .retry import RetryPolicy

logger: logging.Logger = logging.getLogger(__name__)

# Pause between two comment writes, on top of any retry backoff
DEFAULT_COMMENT_DELAY: Final[float] = 0.3


class CommentReplicator:
    """Copies the human-written comments of a ticket onto a ticket in the target account.

    Comments are written one at a time in their original order, with a short
    pause between writes so a long thread does not burst the target's rate limit.
    """

    comment_delay: float

    def __init__(
        self,
        client_factory: ClientFactory,
        retry_policy: RetryPolicy,
        *,
        comment_delay: float = DEFAULT_COMMENT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client_factory = client_factory
        self._retry = retry_policy
        self.comment_delay = comment_delay
        self._sleep = sleep

    def replicate(
        self,
        source_ticket_id: int,
        target_ticket_id: int,
        source: AccountCredentials,
        target: AccountCredentials,
    ) -> CommentReplicationResult:
        """Copy comments best-effort. Never raises on remote failures."""
        result = CommentReplicationResult()

        try:
            with self._client_factory(source) as source_client:
                comments = self._fetch_comments(source_client, source_ticket_id)
        except MigrationError as e:
            logger.warning(f"Could not fetch comments of ticket {source_ticket_id}: {e}")
            result.list_failed = True
            result.errors.append(f"Comment list: {e}")
            return result

        result.fetched = len(comments)

        with self._client_factory(target) as target_client:
            for position, comment in enumerate(comments, start=1):
                if comment.is_system:
                    logger.debug(f"Skipping {comment.channel} comment {position} of ticket {source_ticket_id}")
                    result.skipped += 1
                    continue

                try:
                    self._retry.execute(
                        lambda comment=comment: target_client.add_comment(
                            target_ticket_id, comment.body, public=comment.public
                        ),
                        description=f"append comment {position} to ticket {target_ticket_id}",
                    )
                    result.created += 1
                    logger.debug(f"Migrated comment {position} of ticket {source_ticket_id}")
                except MigrationError as e:
                    logger.warning(f"Failed to migrate comment {position} of ticket {source_ticket_id}: {e}")
                    result.failed += 1
                    result.errors.append(f"Comment {position}: {e}")

                self._sleep(self.comment_delay)

        logger.info(
            f"Ticket {source_ticket_id}: {result.created} comment(s) migrated, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _fetch_comments(self, source_client: HelpdeskAPI, ticket_id: int) -> list[Comment]:
        """Read every page of a ticket's comments, retrying each page on its own."""
        raw_comments: list[dict[str, Any]] = []
        page_url: str | None = None
        seen_pages: set[str] = set()

        while True:
            page, next_page = self._retry.execute(
                lambda page_url=page_url: source_client.list_comment_page(ticket_id, page_url),
                description=f"list comments of ticket {ticket_id} (page {len(seen_pages) + 1})",
            )
            raw_comments.extend(page)
            if next_page is None:
                break
            if next_page in seen_pages:
                logger.warning(f"Comment pages of ticket {ticket_id} link back to {next_page}, stopping")
                break
            seen_pages.add(next_page)
            page_url = next_page

        return [Comment.from_api(raw) for raw in raw_comments]
