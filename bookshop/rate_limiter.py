from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param
from slowapi import Limiter
from slowapi.util import get_remote_address

from bookshop import auth
from bookshop.config import settings
from bookshop.dependencies import get_token_service
from bookshop.errors import InvalidToken


def rate_limit_key(request: Request) -> str:
    """Bucket per authenticated user, per client address otherwise."""
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and token:
        try:
            payload = get_token_service().verify(token, auth.ACCESS)
        except InvalidToken:
            return get_remote_address(request)
        return f"user:{payload.user_id}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[settings.RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
