from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookshop import models, schemas
from bookshop.errors import Conflict


def _create_unique(db: Session, model, data, label: str):
    existing = db.query(model).filter(model.name == data.name).first()
    if existing:
        raise Conflict(f"{label} already exists")

    row = model(**data.model_dump())
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(f"{label} already exists") from exc
    db.refresh(row)
    return row


def create_category(db: Session, data: schemas.CategoryCreate) -> schemas.CategoryOut:
    category = _create_unique(db, models.Category, data, "Category")
    return schemas.CategoryOut.model_validate(category)


def list_categories(db: Session) -> list[schemas.CategoryOut]:
    rows = db.query(models.Category).order_by(models.Category.id.asc()).all()
    return [schemas.CategoryOut.model_validate(row) for row in rows]


def create_author(db: Session, data: schemas.AuthorCreate) -> schemas.AuthorOut:
    author = _create_unique(db, models.Author, data, "Author")
    return schemas.AuthorOut.model_validate(author)


def list_authors(db: Session) -> list[schemas.AuthorOut]:
    rows = db.query(models.Author).order_by(models.Author.id.asc()).all()
    return [schemas.AuthorOut.model_validate(row) for row in rows]


def create_tag(db: Session, data: schemas.TagCreate) -> schemas.TagOut:
    tag = _create_unique(db, models.Tag, data, "Tag")
    return schemas.TagOut.model_validate(tag)


def list_tags(db: Session) -> list[schemas.TagOut]:
    rows = db.query(models.Tag).order_by(models.Tag.id.asc()).all()
    return [schemas.TagOut.model_validate(row) for row in rows]
