from __future__ import annotations

import logging
from typing import Any, List, Optional

from fitplan.config.constants import USER_SCOPED_KEYS, user_key
from fitplan.redis.cache import KeyValueStore

logger = logging.getLogger(__name__)


class UserContext:
    """The signed-in user (None for guest) and the key namespace derived from it."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self.user_id = str(user_id) if user_id is not None else None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def key(self, base_key: str) -> str:
        return user_key(base_key, self.user_id)

    def switch(self, user_id: Optional[str]) -> Optional[str]:
        previous = self.user_id
        self.user_id = str(user_id) if user_id is not None else None
        return previous


def validate_cached_data(payload: Any, user_id: Optional[str]) -> bool:
    if not isinstance(payload, dict):
        return False
    owner = payload.get("userId")
    if owner is None and user_id is None:
        return True
    return owner is not None and str(owner) == str(user_id)


async def migrate_guest_data(store: KeyValueStore, user_id: str) -> List[str]:
    """Move guest-mode (temp_*) entries under the user's namespace.

    Existing user data wins; the guest copy is dropped either way.
    """
    migrated = []
    for base_key in USER_SCOPED_KEYS:
        guest_key = user_key(base_key, None)
        try:
            value = await store.get(guest_key)
            if value is None:
                continue
            target = user_key(base_key, user_id)
            if await store.get(target) is None:
                await store.set(target, value)
                migrated.append(base_key)
            await store.remove(guest_key)
        except Exception as exc:
            logger.warning("Guest data migration failed for %s: %s", base_key, exc)
    if migrated:
        logger.info("Migrated guest data for user %s: %s", user_id, ", ".join(migrated))
    return migrated


async def clear_user_data(store: KeyValueStore, user_id: Optional[str]) -> None:
    for base_key in USER_SCOPED_KEYS:
        try:
            await store.remove(user_key(base_key, user_id))
        except Exception as exc:
            logger.warning("Could not clear %s for user %s: %s", base_key, user_id, exc)
