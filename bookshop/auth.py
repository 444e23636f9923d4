import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from bookshop.errors import InvalidToken

ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        # unknown or malformed hash
        return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenPayload:
    user_id: int
    expires_at: datetime


class TokenService:
    """Signs and verifies access/refresh JWTs. Never touches storage."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings) -> "TokenService":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    def _create_token(self, user_id: int, which: str) -> str:
        expire = datetime.now(timezone.utc) + self._ttls[which]
        payload = {
            "id": user_id,
            "type": which,
            # keeps two tokens issued within the same second distinct
            "jti": uuid.uuid4().hex,
            "exp": expire,
        }
        return jwt.encode(payload, self._secrets[which], algorithm=self.algorithm)

    def issue_access_token(self, user_id: int) -> str:
        return self._create_token(user_id, ACCESS)

    def issue_refresh_token(self, user_id: int) -> str:
        return self._create_token(user_id, REFRESH)

    def verify(self, token: str, which: str) -> TokenPayload:
        if which not in self._secrets:
            raise ValueError(f"Unknown token kind: {which}")
        try:
            payload = jwt.decode(token, self._secrets[which], algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != which:
            raise InvalidToken()

        try:
            user_id = int(payload["id"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

        return TokenPayload(user_id=user_id, expires_at=expires_at)
