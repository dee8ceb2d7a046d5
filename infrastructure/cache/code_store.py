"""Typed phone verification code store on top of an EphemeralStore.

One live code per user: put() overwrites the previous entry and restarts the
expiry window. The store TTL matches the code TTL, so the backend forgets the
entry at roughly the same moment the code stops being accepted.
"""

from __future__ import annotations

from typing import Optional

from infrastructure.cache.ephemeral_store import EphemeralStore
from schemas.models.security import EphemeralVerificationCode


class PhoneCodeStore:
    def __init__(self, store: EphemeralStore, ttl_seconds: int = 600) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds

    def _key(self, user_id: str) -> str:
        return f"phone_verification:{user_id}"

    async def put(self, user_id: str, entry: EphemeralVerificationCode) -> None:
        await self._store.put(
            self._key(user_id), entry.model_dump(mode="json"), self.ttl_seconds
        )

    async def get(self, user_id: str) -> Optional[EphemeralVerificationCode]:
        raw = await self._store.get(self._key(user_id))
        if raw is None:
            return None
        return EphemeralVerificationCode.model_validate(raw)

    async def delete(self, user_id: str) -> None:
        await self._store.delete(self._key(user_id))
