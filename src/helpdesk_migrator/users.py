"""
Resolution of source users to users of the target account.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import MigrationError
from .models import User, UserCacheKey, target_role
from .results import StageResult

if TYPE_CHECKING:
    from .models import AccountCredentials
    from .protocols import ClientFactory, HelpdeskAPI
    from .retry import RetryPolicy
    from .user_cache import UserCache

logger: logging.Logger = logging.getLogger(__name__)


def _matching_users(candidates: list[dict[str, Any]], email: str) -> list[dict[str, Any]]:
    wanted = email.strip().lower()
    return [user for user in candidates if (user.get("email") or "").strip().lower() == wanted]


class UserResolver:
    """Maps a source user id to a user id in the target account.

    Looks the user up by email in the target account and creates it when
    absent. Results are memoized in a shared UserCache, so each
    (user, source, target) triple is created at most once.
    """

    def __init__(self, client_factory: ClientFactory, retry_policy: RetryPolicy, cache: UserCache) -> None:
        self._client_factory = client_factory
        self._retry = retry_policy
        self.cache = cache

    def resolve(
        self,
        user_id: int,
        source: AccountCredentials,
        target: AccountCredentials,
        *,
        dry_run: bool = False,
    ) -> StageResult[int]:
        """Return the target user id for a source user.

        With ``dry_run`` the target is only searched: a user that would have to
        be created resolves to no value and nothing is written or cached.

        Failures are logged and reported as a FAILED result with no value; they
        never propagate, and the caller carries on without a requester.
        """
        key = UserCacheKey(user_id, source.subdomain, target.subdomain)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"User {user_id} already resolved to {cached} in {target.subdomain}")
            return StageResult.success(cached)

        with self.cache.key_lock(key):
            # Another migration may have resolved the key while we waited
            cached = self.cache.get(key)
            if cached is not None:
                return StageResult.success(cached)

            try:
                with self._client_factory(source) as source_client, self._client_factory(target) as target_client:
                    target_user_id = self._find_or_create(user_id, source_client, target_client, create=not dry_run)
            except (MigrationError, KeyError, TypeError) as e:
                logger.warning(f"Could not resolve user {user_id} from {source.subdomain} in {target.subdomain}: {e}")
                return StageResult.failed(f"User {user_id}: {e}")

            if target_user_id is None:
                return StageResult.success(None)
            return StageResult.success(self.cache.insert_if_absent(key, target_user_id))

    def _find_or_create(
        self, user_id: int, source_client: HelpdeskAPI, target_client: HelpdeskAPI, *, create: bool
    ) -> int | None:
        source_user = User.from_api(
            self._retry.execute(lambda: source_client.get_user(user_id), description=f"fetch user {user_id}")
        )

        candidates = self._retry.execute(
            lambda: target_client.search_users(source_user.email), description=f"search user {source_user.email}"
        )
        matches = _matching_users(candidates, source_user.email)
        if matches:
            existing_id: int = matches[0]["id"]
            logger.debug(f"Found existing user {source_user.email} as {existing_id}")
            return existing_id

        new_user = {
            "name": source_user.name,
            "email": source_user.email,
            "role": target_role(source_user.role),
            "verified": True,
        }
        if not create:
            logger.info(f"Dry run: user {source_user.email} would be created (role {new_user['role']})")
            return None

        created = self._retry.execute(
            lambda: target_client.create_user(new_user), description=f"create user {source_user.email}"
        )
        logger.info(f"Created user {source_user.email} as {created['id']} (role {new_user['role']})")
        return created["id"]
