from typing import Optional

import redis

from bookshop.config import settings

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


class SessionStore:
    """Current refresh token per user, one entry each, expiring with the token."""

    key_prefix = "refresh"

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def _key(self, user_id: int) -> str:
        return f"{self.key_prefix}:{user_id}"

    def get(self, user_id: int) -> Optional[str]:
        return self.client.get(self._key(user_id))

    def set(self, user_id: int, refresh_token: str) -> None:
        self.client.setex(self._key(user_id), self.ttl_seconds, refresh_token)

    def delete(self, user_id: int) -> None:
        self.client.delete(self._key(user_id))

    def ping(self) -> bool:
        return bool(self.client.ping())
