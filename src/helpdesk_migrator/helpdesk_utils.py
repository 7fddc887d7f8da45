from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from .exceptions import MalformedResponseError, RemoteAPIError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from .models import AccountCredentials

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

API_PREFIX: Final[str] = "/api/v2/"
DEFAULT_BASE_DOMAIN: Final[str] = "example-helpdesk.com"
DEFAULT_TIMEOUT: Final[float] = 30.0


def get_base_url(subdomain: str, base_domain: str = DEFAULT_BASE_DOMAIN) -> str:
    return f"https://{subdomain}.{base_domain}"


def parse_retry_after(value: str | None) -> float | None:
    """Parse a retry-after header given in seconds. Returns None when absent or unusable."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        logger.debug(f"Ignoring unparsable retry-after header: {value!r}")
        return None
    return max(seconds, 0.0)


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _entity(payload: Any, key: str, what: str) -> dict[str, Any]:
    """Return ``payload[key]``, an object with an id, or raise MalformedResponseError."""
    entity = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(entity, dict) or "id" not in entity:
        msg = f"Unexpected response to {what}: no '{key}' object with an id"
        raise MalformedResponseError(msg, payload=payload)
    return entity


def _entities(payload: Any, key: str, what: str) -> list[dict[str, Any]]:
    """Return ``payload[key]``, a list of objects, or raise MalformedResponseError."""
    entities = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(entities, list) or not all(isinstance(item, dict) for item in entities):
        msg = f"Unexpected response to {what}: no '{key}' list"
        raise MalformedResponseError(msg, payload=payload)
    return entities


class HelpdeskClient:
    """REST client for one helpdesk account.

    Authenticates with HTTP Basic auth using ``{email}/token`` and the API
    token. Never retries; wrap calls in a RetryPolicy.
    """

    credentials: AccountCredentials
    base_url: str
    timeout: float

    def __init__(
        self,
        credentials: AccountCredentials,
        *,
        base_domain: str = DEFAULT_BASE_DOMAIN,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = get_base_url(credentials.subdomain, base_domain)
        self.timeout = timeout
        self._session: requests.Session = session or requests.Session()
        self._session.auth = (credentials.api_username, credentials.token)
        self._session.headers.update({"Accept": "application/json"})

    def __enter__(self) -> HelpdeskClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def request(self, method: str, path: str, *, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        """Issue a call against an API path and return the decoded body.

        Absolute URLs are accepted only on this account's host (pagination links).
        """
        url = path if path.startswith(f"{self.base_url}/") else f"{self.base_url}{path}"
        logger.debug(f"{method.upper()} {url}")
        response = self._session.request(method.upper(), url, json=json, params=params, timeout=self.timeout)
        payload = _decode_body(response)

        if not response.ok:
            msg = f"{method.upper()} {path} on {self.credentials.subdomain} failed with HTTP {response.status_code}"
            raise RemoteAPIError(
                msg,
                status_code=response.status_code,
                payload=payload,
                retry_after=parse_retry_after(response.headers.get("retry-after")),
            )
        return payload

    def get_current_user(self) -> dict[str, Any]:
        return _entity(self.request("GET", "/api/v2/users/me.json"), "user", "current user lookup")

    def get_user(self, user_id: int) -> dict[str, Any]:
        return _entity(self.request("GET", f"/api/v2/users/{user_id}.json"), "user", f"user {user_id} lookup")

    def search_users(self, email: str) -> list[dict[str, Any]]:
        payload = self.request("GET", "/api/v2/users/search.json", params={"query": f"email:{email}"})
        return _entities(payload, "users", f"user search for {email}")

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        return _entity(self.request("POST", "/api/v2/users.json", json={"user": user}), "user", "user creation")

    def get_ticket(self, ticket_id: int) -> dict[str, Any]:
        payload = self.request("GET", f"/api/v2/tickets/{ticket_id}.json")
        return _entity(payload, "ticket", f"ticket {ticket_id} lookup")

    def create_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        return _entity(
            self.request("POST", "/api/v2/tickets.json", json={"ticket": ticket}), "ticket", "ticket creation"
        )

    def add_comment(self, ticket_id: int, body: str, *, public: bool) -> None:
        """Append a comment. Any 2xx response counts as written, whatever its body."""
        update = {"ticket": {"comment": {"body": body, "public": public}}}
        self.request("PUT", f"/api/v2/tickets/{ticket_id}.json", json=update)

    def list_comment_page(
        self, ticket_id: int, page_url: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Return one page of a ticket's comments and the link to the next page.

        A next page link pointing outside this account is dropped.
        """
        payload = self.request("GET", page_url or f"/api/v2/tickets/{ticket_id}/comments.json")
        comments = _entities(payload, "comments", f"comment list of ticket {ticket_id}")

        next_page = payload.get("next_page")
        if not next_page:
            return comments, None
        on_host = isinstance(next_page, str) and next_page.startswith((f"{self.base_url}/", API_PREFIX))
        if not on_host:
            logger.warning(f"Ignoring next_page outside {self.base_url}: {next_page}")
            return comments, None
        return comments, next_page


def get_client(
    credentials: AccountCredentials,
    *,
    base_domain: str = DEFAULT_BASE_DOMAIN,
    timeout: float = DEFAULT_TIMEOUT,
) -> HelpdeskClient:
    """Get a helpdesk client for an account."""
    return HelpdeskClient(credentials, base_domain=base_domain, timeout=timeout)


def client_factory(
    *, base_domain: str = DEFAULT_BASE_DOMAIN, timeout: float = DEFAULT_TIMEOUT
) -> Callable[[AccountCredentials], HelpdeskClient]:
    """Return a factory opening clients against ``base_domain``."""
    return functools.partial(get_client, base_domain=base_domain, timeout=timeout)
