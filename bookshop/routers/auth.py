from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bookshop import auth, schemas
from bookshop.config import Settings
from bookshop.database import get_db
from bookshop.dependencies import get_mailer, get_session_store, get_settings, get_token_service
from bookshop.mailer import Mailer
from bookshop.redis_client import SessionStore
from bookshop.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=schemas.Envelope[schemas.AuthResponse],
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    tokens: auth.TokenService = Depends(get_token_service),
    sessions: SessionStore = Depends(get_session_store),
):
    result = auth_service.register(db, tokens, sessions, payload)
    return {"success": True, "data": result}


@router.post("/login", response_model=schemas.Envelope[schemas.AuthResponse])
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    tokens: auth.TokenService = Depends(get_token_service),
    sessions: SessionStore = Depends(get_session_store),
):
    result = auth_service.login(db, tokens, sessions, payload)
    return {"success": True, "data": result}


@router.post("/refresh", response_model=schemas.Envelope[schemas.TokenPair])
def refresh_token(
    payload: schemas.RefreshTokenRequest,
    tokens: auth.TokenService = Depends(get_token_service),
    sessions: SessionStore = Depends(get_session_store),
):
    result = auth_service.refresh(tokens, sessions, payload.refresh_token)
    return {"success": True, "data": result}


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    payload: schemas.RefreshTokenRequest,
    tokens: auth.TokenService = Depends(get_token_service),
    sessions: SessionStore = Depends(get_session_store),
):
    auth_service.logout(tokens, sessions, payload.refresh_token)
    return {"success": True, "message": "Logged out"}


@router.post("/forgot-password", response_model=schemas.MessageResponse)
def forgot_password(
    payload: schemas.ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    auth_service.forgot_password(
        db, mailer, payload.email, expire_minutes=settings.RESET_CODE_EXPIRE_MINUTES
    )
    return {"success": True, "message": "A password reset code has been sent."}


@router.post("/reset-password", response_model=schemas.MessageResponse)
def reset_password(payload: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, payload)
    return {"success": True, "message": "Password reset successful"}
