"""Tests for the migration data models."""

import pytest

from helpdesk_migrator import AccountCredentials, Comment, Ticket, TicketDraft, User, ValidationError
from helpdesk_migrator.models import target_role


@pytest.mark.unit
class TestAccountCredentials:
    def test_api_username(self) -> None:
        credentials = AccountCredentials(subdomain="acme", email="a@acme.com", token="t")
        assert credentials.api_username == "a@acme.com/token"

    def test_token_not_in_repr(self) -> None:
        credentials = AccountCredentials(subdomain="acme", email="a@acme.com", token="super-secret")
        assert "super-secret" not in repr(credentials)

    def test_validate_lists_missing_fields(self) -> None:
        credentials = AccountCredentials(subdomain="acme", email=" ", token="")
        with pytest.raises(ValidationError, match="email, token"):
            credentials.validate()


@pytest.mark.unit
class TestTargetRole:
    @pytest.mark.parametrize(
        ("role", "expected"), [("admin", "agent"), ("agent", "agent"), ("end-user", "end-user")]
    )
    def test_admin_downgraded_only(self, role: str, expected: str) -> None:
        assert target_role(role) == expected


@pytest.mark.unit
class TestTicket:
    def test_from_api_defaults_tags(self) -> None:
        ticket = Ticket.from_api({"id": 5, "subject": "Printer", "description": "Jammed", "tags": None})

        assert ticket.tags == []
        assert ticket.requester_id is None

    def test_to_draft_copies_fields(self) -> None:
        ticket = Ticket.from_api(
            {
                "id": 5,
                "subject": "Printer",
                "description": "Jammed",
                "status": "open",
                "priority": "high",
                "type": "incident",
                "tags": ["hardware", "floor-2"],
                "requester_id": 77,
            }
        )

        draft = ticket.to_draft(requester_id=900)

        assert draft == TicketDraft(
            subject="Printer",
            description="Jammed",
            status="open",
            priority="high",
            type="incident",
            tags=["hardware", "floor-2"],
            requester_id=900,
        )
        draft.tags.append("migrated")
        assert ticket.tags == ["hardware", "floor-2"]

    def test_draft_payload_omits_unset_fields(self) -> None:
        draft = TicketDraft(subject="Hi", description="Body", status="new")

        assert draft.to_api() == {"subject": "Hi", "description": "Body", "status": "new", "tags": []}


@pytest.mark.unit
class TestUserAndComment:
    def test_user_from_api(self) -> None:
        user = User.from_api({"id": 1, "name": "Jane", "email": "jane@example.com", "role": "admin"})
        assert user == User(id=1, name="Jane", email="jane@example.com", role="admin")

    @pytest.mark.parametrize(("channel", "is_system"), [("api", True), ("system", True), ("web", False), ("", False)])
    def test_comment_channel(self, channel: str, is_system: bool) -> None:
        comment = Comment.from_api({"body": "x", "public": False, "via": {"channel": channel}})

        assert comment.is_system is is_system
        assert comment.public is False

    def test_comment_without_via(self) -> None:
        comment = Comment.from_api({"body": "x"})
        assert comment.channel == ""
        assert comment.public is True
