from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials

from bookshop import auth
from bookshop.config import Settings, settings
from bookshop.errors import InvalidToken, Unauthorized
from bookshop.mailer import Mailer
from bookshop.redis_client import SessionStore, get_redis_client
from bookshop.storage import ThumbnailStorage, build_thumbnail_storage


def get_settings() -> Settings:
    return settings


@lru_cache
def get_token_service() -> auth.TokenService:
    return auth.TokenService.from_settings(settings)


def get_session_store() -> SessionStore:
    return SessionStore(get_redis_client(), settings.refresh_token_ttl_seconds)


@lru_cache
def get_thumbnail_storage() -> ThumbnailStorage:
    return build_thumbnail_storage(settings)


@lru_cache
def get_mailer() -> Mailer:
    return Mailer(settings.RESEND_API_KEY, settings.RESEND_FROM)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth.security),
    tokens: auth.TokenService = Depends(get_token_service),
    sessions: SessionStore = Depends(get_session_store),
) -> int:
    """Authenticated user id from a bearer access token.

    The token must verify as an access token and the user must still hold a
    live refresh session, so logging out invalidates outstanding access
    tokens too.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Authorization header missing")

    try:
        payload = tokens.verify(credentials.credentials, auth.ACCESS)
    except InvalidToken as exc:
        raise Unauthorized() from exc

    if not sessions.get(payload.user_id):
        raise Unauthorized("Token is no longer valid")

    return payload.user_id
