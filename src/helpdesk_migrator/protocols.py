"""Protocols defining the contract of the helpdesk remote API.

The migration engine separates concerns into three layers:

1. HelpdeskAPI: issues authenticated REST calls against one account
2. RetryPolicy: wraps every one of those calls with backoff and rate-limit waits
3. TicketMigrator: sequences the calls into a ticket migration

Components never hold a client beyond one call. They receive a ClientFactory
and open a client for the account they are about to talk to. This allows:
- Testing the pipeline with in-memory fakes instead of HTTP
- Keeping credentials owned by the caller of one migration
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from types import TracebackType

    from .models import AccountCredentials


class HelpdeskAPI(Protocol):
    """Protocol for REST access to one helpdesk account.

    Every method returns the entity carried by the response and raises
    RemoteAPIError for a non-2xx status, or MalformedResponseError when a 2xx
    body lacks the expected entity. Network failures surface as
    requests exceptions. Implementations never retry: the RetryPolicy does.

    Implementations are context managers so the underlying connection pool
    is released once a component is done with the account.
    """

    def get_current_user(self) -> dict[str, Any]:
        """Return the user the credentials authenticate as."""
        ...

    def get_user(self, user_id: int) -> dict[str, Any]:
        """Return a single user by id."""
        ...

    def search_users(self, email: str) -> list[dict[str, Any]]:
        """Return the users matching an email address."""
        ...

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        """Create a user and return it."""
        ...

    def get_ticket(self, ticket_id: int) -> dict[str, Any]:
        """Return a single ticket by id."""
        ...

    def create_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        """Create a ticket and return it."""
        ...

    def add_comment(self, ticket_id: int, body: str, *, public: bool) -> None:
        """Append one comment to a ticket through a ticket update."""
        ...

    def list_comment_page(
        self, ticket_id: int, page_url: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Return one page of a ticket's comments, oldest first, and the next page link (None on the last page)."""
        ...

    def request(self, method: str, path: str, *, json: Any = None) -> Any:
        """Issue a raw call against an API path and return the decoded body."""
        ...

    def __enter__(self) -> HelpdeskAPI: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class ClientFactory(Protocol):
    """Callable opening a HelpdeskAPI client for an account."""

    def __call__(self, credentials: AccountCredentials) -> HelpdeskAPI: ...
