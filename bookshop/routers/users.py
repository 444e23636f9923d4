from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bookshop import schemas
from bookshop.database import get_db
from bookshop.dependencies import get_current_user_id
from bookshop.services import users as users_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile", response_model=schemas.Envelope[schemas.UserPublic])
def get_profile(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"success": True, "data": users_service.get_profile(db, user_id)}


@router.patch("/edit-profile", response_model=schemas.Envelope[schemas.UserPublic])
def edit_profile(
    payload: schemas.UpdateProfileRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"success": True, "data": users_service.update_profile(db, user_id, payload)}


@router.patch("/change-password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    users_service.change_password(db, user_id, payload)
    return {"success": True, "message": "Password has been changed successfully"}
