"""
Process-wide cache of migrated users.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .models import UserCacheKey

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class UserCache:
    """Append-only mapping of (source user, source account, target account) to target user id.

    Safe to share between threads running migrations concurrently. Entries are
    never invalidated; the cache lives as long as the migrator that owns it.
    """

    def __init__(self) -> None:
        self._entries: dict[UserCacheKey, int] = {}
        self._key_locks: dict[UserCacheKey, _KeyLock] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: UserCacheKey) -> int | None:
        with self._lock:
            return self._entries.get(key)

    def insert_if_absent(self, key: UserCacheKey, target_user_id: int) -> int:
        """Store ``target_user_id`` unless the key is already cached. Returns the cached id."""
        with self._lock:
            return self._entries.setdefault(key, target_user_id)

    @property
    def locked_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._lock:
            return len(self._key_locks)

    @contextmanager
    def key_lock(self, key: UserCacheKey) -> Iterator[None]:
        """Serialise resolutions of one key.

        Holding it across lookup and creation guarantees a single creation call
        per key even when several migrations resolve the same requester at once.
        The lock is discarded when its last holder or waiter leaves.
        """
        with self._lock:
            key_lock = self._key_locks.setdefault(key, _KeyLock())
            key_lock.holders += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._lock:
                key_lock.holders -= 1
                if key_lock.holders == 0:
                    del self._key_locks[key]
