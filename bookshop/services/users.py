from datetime import datetime

from sqlalchemy.orm import Session

from bookshop import auth, models, schemas
from bookshop.errors import Conflict, InvalidCredentials, NotFound


def _get_user(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


def get_profile(db: Session, user_id: int) -> schemas.UserPublic:
    return schemas.UserPublic.model_validate(_get_user(db, user_id))


def update_profile(
    db: Session, user_id: int, data: schemas.UpdateProfileRequest
) -> schemas.UserPublic:
    user = _get_user(db, user_id)

    if data.email:
        taken = (
            db.query(models.User)
            .filter(models.User.email == data.email, models.User.id != user_id)
            .first()
        )
        if taken:
            raise Conflict("Email already exists")
        user.email = data.email

    if data.username:
        taken = (
            db.query(models.User)
            .filter(models.User.username == data.username, models.User.id != user_id)
            .first()
        )
        if taken:
            raise Conflict("Username already exists")
        user.username = data.username

    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return schemas.UserPublic.model_validate(user)


def change_password(db: Session, user_id: int, data: schemas.ChangePasswordRequest) -> None:
    user = _get_user(db, user_id)
    if not auth.verify_password(data.old_password, user.password):
        raise InvalidCredentials("Old password is not valid")

    user.password = auth.hash_password(data.new_password)
    user.updated_at = datetime.utcnow()
    db.commit()
