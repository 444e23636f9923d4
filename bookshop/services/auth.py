"""
Registration, login and the refresh-token session lifecycle.

A user is logged in while the session store holds a refresh token for them.
Login, registration and refresh overwrite that entry (rotation); logout
deletes it. Password reset goes through a one-time code stored hashed on the
user row.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookshop import auth, models, schemas
from bookshop.errors import (
    Conflict,
    InvalidCode,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    PreconditionFailed,
)
from bookshop.mailer import Mailer
from bookshop.redis_client import SessionStore

logger = logging.getLogger(__name__)

RESET_CODE_LENGTH = 6


def find_user_by_email_or_username(
    db: Session, email: Optional[str] = None, username: Optional[str] = None
) -> Optional[models.User]:
    if not email and not username:
        raise ValueError("Must provide email or username")

    conditions = []
    if email:
        conditions.append(models.User.email == email)
    if username:
        conditions.append(models.User.username == username)
    return db.query(models.User).filter(or_(*conditions)).first()


def _start_session(
    tokens: auth.TokenService, sessions: SessionStore, user_id: int
) -> schemas.TokenPair:
    access_token = tokens.issue_access_token(user_id)
    refresh_token = tokens.issue_refresh_token(user_id)
    sessions.set(user_id, refresh_token)
    return schemas.TokenPair(access_token=access_token, refresh_token=refresh_token)


def register(
    db: Session,
    tokens: auth.TokenService,
    sessions: SessionStore,
    data: schemas.RegisterRequest,
) -> schemas.AuthResponse:
    if find_user_by_email_or_username(db, email=data.email, username=data.username):
        raise Conflict("User already exists")

    user = models.User(
        username=data.username,
        email=data.email,
        password=auth.hash_password(data.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # lost a race against a concurrent registration
        db.rollback()
        raise Conflict("User already exists") from exc
    db.refresh(user)

    pair = _start_session(tokens, sessions, user.id)
    logger.info("Registered user %s", user.id)
    return schemas.AuthResponse(user=schemas.UserPublic.model_validate(user), **pair.model_dump())


def login(
    db: Session,
    tokens: auth.TokenService,
    sessions: SessionStore,
    data: schemas.LoginRequest,
) -> schemas.AuthResponse:
    if "@" in data.login:
        user = find_user_by_email_or_username(db, email=data.login)
    else:
        user = find_user_by_email_or_username(db, username=data.login)

    # same error for unknown user and wrong password
    if not user or not auth.verify_password(data.password, user.password):
        raise InvalidCredentials()

    pair = _start_session(tokens, sessions, user.id)
    return schemas.AuthResponse(user=schemas.UserPublic.model_validate(user), **pair.model_dump())


def refresh(
    tokens: auth.TokenService, sessions: SessionStore, refresh_token: str
) -> schemas.TokenPair:
    payload = tokens.verify(refresh_token, auth.REFRESH)

    stored = sessions.get(payload.user_id)
    if stored is None or not secrets.compare_digest(stored, refresh_token):
        logger.warning("Stale or replayed refresh token for user %s", payload.user_id)
        raise InvalidToken()

    return _start_session(tokens, sessions, payload.user_id)


def logout(tokens: auth.TokenService, sessions: SessionStore, refresh_token: str) -> None:
    payload = tokens.verify(refresh_token, auth.REFRESH)
    sessions.delete(payload.user_id)


def generate_reset_code() -> str:
    return f"{secrets.randbelow(10 ** RESET_CODE_LENGTH):0{RESET_CODE_LENGTH}d}"


def forgot_password(
    db: Session, mailer: Mailer, email: str, expire_minutes: int = 15
) -> None:
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user:
        raise NotFound("User not found")

    code = generate_reset_code()
    user.reset_code_hash = auth.hash_token(code)
    user.reset_code_expires_at = datetime.utcnow() + timedelta(minutes=expire_minutes)
    db.commit()

    mailer.send(
        email,
        "Your password reset code",
        f"Your password reset code is {code}. It expires in {expire_minutes} minutes.",
    )


def reset_password(db: Session, data: schemas.ResetPasswordRequest) -> None:
    user = db.query(models.User).filter(models.User.email == data.email).first()
    if not user:
        raise NotFound("User not found")

    if not user.reset_code_hash:
        raise PreconditionFailed()

    now = datetime.utcnow()
    new_hash = auth.hash_password(data.new_password)

    # Match the code in the same statement that clears it so two concurrent
    # resets cannot both succeed with one code.
    updated = (
        db.query(models.User)
        .filter(
            models.User.id == user.id,
            models.User.reset_code_hash == auth.hash_token(data.otp),
            models.User.reset_code_expires_at >= now,
        )
        .update(
            {
                models.User.password: new_hash,
                models.User.reset_code_hash: None,
                models.User.reset_code_expires_at: None,
                models.User.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise InvalidCode()

    db.commit()
    logger.info("Password reset for user %s", user.id)
