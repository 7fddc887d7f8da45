"""
Environment-based configuration for the helpdesk migration tool.

Values are read from the process environment, after loading a ``.env`` file
from the working directory when one exists.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

from . import helpdesk_utils as hdu
from .comments import DEFAULT_COMMENT_DELAY
from .exceptions import ValidationError
from .models import AccountCredentials
from .retry import DEFAULT_MAX_ATTEMPTS, DEFAULT_RATE_LIMIT_WAIT

_SUBDOMAIN_SUFFIX: Final[str] = "_SUBDOMAIN"
_EMAIL_SUFFIX: Final[str] = "_EMAIL"
_TOKEN_SUFFIX: Final[str] = "_API_TOKEN"  # noqa: S105


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        msg = f"Invalid value for {name}: {raw!r} (expected a number)"
        raise ValueError(msg) from None


@dataclass(frozen=True)
class Settings:
    """Tunables of the migration engine."""

    base_domain: str = hdu.DEFAULT_BASE_DOMAIN
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT
    comment_delay: float = DEFAULT_COMMENT_DELAY
    timeout: float = hdu.DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> Settings:
        if dotenv:
            load_dotenv()

        max_attempts = _env_number("HELPDESK_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
        if max_attempts < 1 or max_attempts != int(max_attempts):
            msg = f"Invalid value for HELPDESK_MAX_ATTEMPTS: {max_attempts:g} (expected a positive integer)"
            raise ValueError(msg)

        return cls(
            base_domain=os.environ.get("HELPDESK_BASE_DOMAIN") or hdu.DEFAULT_BASE_DOMAIN,
            max_attempts=int(max_attempts),
            rate_limit_wait=_env_number("HELPDESK_RATE_LIMIT_WAIT", DEFAULT_RATE_LIMIT_WAIT),
            comment_delay=_env_number("HELPDESK_COMMENT_DELAY", DEFAULT_COMMENT_DELAY),
            timeout=_env_number("HELPDESK_TIMEOUT", hdu.DEFAULT_TIMEOUT),
        )


def credentials_from_env(prefix: str) -> AccountCredentials:
    """Build account credentials from ``{PREFIX}_SUBDOMAIN``, ``{PREFIX}_EMAIL`` and ``{PREFIX}_API_TOKEN``."""
    prefix = prefix.upper()
    names = [f"{prefix}{suffix}" for suffix in (_SUBDOMAIN_SUFFIX, _EMAIL_SUFFIX, _TOKEN_SUFFIX)]
    values = [os.environ.get(name, "").strip() for name in names]

    missing = [name for name, value in zip(names, values, strict=True) if not value]
    if missing:
        msg = f"Missing environment variables: {', '.join(missing)}"
        raise ValidationError(msg)

    subdomain, email, token = values
    return AccountCredentials(subdomain=subdomain, email=email, token=token)
