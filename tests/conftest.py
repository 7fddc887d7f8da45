"""
Pytest configuration and fixtures.

This module provides:
- An in-memory fake of the helpdesk API, one account per subdomain
- A recording sleep function so waits can be asserted without waiting
- For integration tests: a skip when live account variables are missing, and
  a failure when the code under test logs a warning
"""

from __future__ import annotations

import copy
import logging
import os
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from unittest.mock import Mock

import pytest
from typing_extensions import override

from helpdesk_migrator import AccountCredentials, RetryPolicy
from helpdesk_migrator.exceptions import RemoteAPIError

if TYPE_CHECKING:
    from collections.abc import Generator

INTEGRATION_ENV_VARS: tuple[str, ...] = (
    "SOURCE_TEST_SUBDOMAIN",
    "SOURCE_TEST_EMAIL",
    "SOURCE_TEST_API_TOKEN",
    "TARGET_TEST_SUBDOMAIN",
    "TARGET_TEST_EMAIL",
    "TARGET_TEST_API_TOKEN",
)


def make_remote_error(status_code: int, *, retry_after: float | None = None, payload: Any = None) -> RemoteAPIError:
    return RemoteAPIError(
        f"HTTP {status_code}",
        status_code=status_code,
        payload=payload if payload is not None else {"error": f"HTTP {status_code}"},
        retry_after=retry_after,
    )


def make_response(
    status_code: int = 200, payload: Any = None, *, headers: dict[str, str] | None = None, text: str | None = None
) -> Mock:
    """A mocked ``requests.Response``; no payload and no text means an empty body."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    if text is not None:
        response.content = text.encode()
        response.text = text
        response.json.side_effect = ValueError("not json")
    elif payload is None:
        response.content = b""
    else:
        response.content = b"{...}"
        response.json.return_value = payload
    return response


@dataclass
class FakeAccount:
    """State of one fake helpdesk account."""

    subdomain: str
    me: dict[str, Any] = field(default_factory=lambda: {"id": 1, "name": "Admin", "email": "admin@example.com"})
    users: dict[int, dict[str, Any]] = field(default_factory=dict)
    tickets: dict[int, dict[str, Any]] = field(default_factory=dict)
    comments: dict[int, list[dict[str, Any]]] = field(default_factory=lambda: defaultdict(list))
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    # Method name -> errors raised by its next calls, in order (None lets a call through)
    failures: dict[str, list[Exception | None]] = field(default_factory=lambda: defaultdict(list))
    comment_page_size: int | None = None
    next_id: int = 1000

    WRITE_METHODS = frozenset({"create_user", "create_ticket", "add_comment"})

    def fail(self, method: str, *errors: Exception | None) -> None:
        self.failures[method].extend(errors)

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    @property
    def writes(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [(name, args) for name, args in self.calls if name in self.WRITE_METHODS]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        pending = self.failures.get(method)
        if pending:
            error = pending.pop(0)
            if error is not None:
                raise error

    def _new_id(self) -> int:
        self.next_id += 1
        return self.next_id


class FakeClient:
    """Implements the HelpdeskAPI protocol against a FakeAccount."""

    def __init__(self, account: FakeAccount) -> None:
        self.account = account
        self.closed = False

    def __enter__(self) -> FakeClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def _get(self, collection: dict[int, dict[str, Any]], entity_id: int) -> dict[str, Any]:
        if entity_id not in collection:
            raise make_remote_error(404, payload={"error": "RecordNotFound"})
        return copy.deepcopy(collection[entity_id])

    def get_current_user(self) -> dict[str, Any]:
        self.account._record("get_current_user")
        return dict(self.account.me)

    def get_user(self, user_id: int) -> dict[str, Any]:
        self.account._record("get_user", user_id)
        return self._get(self.account.users, user_id)

    def search_users(self, email: str) -> list[dict[str, Any]]:
        self.account._record("search_users", email)
        return [copy.deepcopy(u) for u in self.account.users.values() if u["email"].lower() == email.lower()]

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        self.account._record("create_user", user)
        created = {**user, "id": self.account._new_id()}
        self.account.users[created["id"]] = created
        return copy.deepcopy(created)

    def get_ticket(self, ticket_id: int) -> dict[str, Any]:
        self.account._record("get_ticket", ticket_id)
        return self._get(self.account.tickets, ticket_id)

    def create_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        self.account._record("create_ticket", ticket)
        created = {**ticket, "id": self.account._new_id()}
        self.account.tickets[created["id"]] = created
        return copy.deepcopy(created)

    def add_comment(self, ticket_id: int, body: str, *, public: bool) -> None:
        self.account._record("add_comment", ticket_id, body, public)
        self._get(self.account.tickets, ticket_id)
        self.account.comments[ticket_id].append({"body": body, "public": public, "via": {"channel": "web"}})

    def list_comment_page(
        self, ticket_id: int, page_url: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        self.account._record("list_comment_page", ticket_id, page_url)
        comments = copy.deepcopy(self.account.comments.get(ticket_id, []))
        size = self.account.comment_page_size or max(len(comments), 1)
        page = int(page_url.rpartition("=")[2]) if page_url else 1
        next_page = None
        if page * size < len(comments):
            next_page = f"/api/v2/tickets/{ticket_id}/comments.json?page={page + 1}"
        return comments[(page - 1) * size : page * size], next_page

    def request(self, method: str, path: str, *, json: Any = None) -> Any:
        self.account._record("request", method, path, json)
        return {"method": method, "path": path, "json": json}


class FakeHelpdesk:
    """A set of fake accounts keyed by subdomain, usable as a ClientFactory."""

    def __init__(self) -> None:
        self.accounts: dict[str, FakeAccount] = {}
        self.clients: list[FakeClient] = []

    def account(self, subdomain: str) -> FakeAccount:
        if subdomain not in self.accounts:
            self.accounts[subdomain] = FakeAccount(subdomain)
        return self.accounts[subdomain]

    def __call__(self, credentials: AccountCredentials) -> FakeClient:
        client = FakeClient(self.account(credentials.subdomain))
        self.clients.append(client)
        return client


@pytest.fixture
def remote_error() -> Any:
    """Factory of RemoteAPIError instances: remote_error(500), remote_error(429, retry_after=2)."""
    return make_remote_error


@pytest.fixture
def helpdesk() -> FakeHelpdesk:
    return FakeHelpdesk()


@pytest.fixture
def source_credentials() -> AccountCredentials:
    return AccountCredentials(subdomain="acme-old", email="admin@acme.com", token="source-token")


@pytest.fixture
def target_credentials() -> AccountCredentials:
    return AccountCredentials(subdomain="acme-new", email="admin@acme.com", token="target-token")


@pytest.fixture
def sleeps() -> list[float]:
    """Durations passed to the recording sleep function, in call order."""
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]) -> Any:
    return sleeps.append


@pytest.fixture
def retry_policy(record_sleep: Any) -> RetryPolicy:
    return RetryPolicy(3, sleep=record_sleep)


# Warning records captured per integration test
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Collects WARNING and above records emitted while an integration test runs."""

    def __init__(self, test_nodeid: str) -> None:
        super().__init__(level=logging.WARNING)
        self.test_nodeid = test_nodeid

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def integration_test_guard(request: pytest.FixtureRequest) -> Generator[None]:
    """Skip integration tests without live accounts and capture their warnings."""
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    missing = [name for name in INTEGRATION_ENV_VARS if not os.environ.get(name)]
    if missing:
        pytest.skip(f"Integration tests require environment variables: {', '.join(missing)}")

    handler = IntegrationTestWarningHandler(request.node.nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]) -> Generator[None]:  # type: ignore[misc]
    """Fail a passing integration test when the code under test logged warnings."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        records = _integration_test_warnings.pop(item.nodeid, [])
        if records:
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(records)} warning(s) detected:\n" + "\n".join(
                f"  - {r.levelname}: {r.getMessage()} (in {r.name}:{r.lineno})" for r in records
            )
