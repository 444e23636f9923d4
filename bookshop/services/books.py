"""
Book commands and queries.

Only the owner of a book may edit or delete it. Listing composes optional
filters conjunctively and counts the full matching set with a separate query
against the same predicate. Tags are fetched for a page of books in one query
and grouped per book by :func:`group_tags`.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from bookshop import models, schemas
from bookshop.errors import Forbidden, NotFound, ValidationError
from bookshop.storage import ThumbnailStorage, ThumbnailUpload, validate_thumbnail_type

logger = logging.getLogger(__name__)


def group_tags(
    rows: Iterable[tuple], book_ids: Iterable[int] = ()
) -> dict[int, list[schemas.RelatedRef]]:
    """Group ``(book_id, tag_id, tag_name)`` rows into per-book tag lists.

    Every id in ``book_ids`` gets an entry, an empty list when the book has
    no tags. Rows with a null tag id (left-join padding) are skipped.
    """
    grouped: dict[int, list[schemas.RelatedRef]] = defaultdict(list)
    for book_id in book_ids:
        grouped[book_id] = []
    for book_id, tag_id, tag_name in rows:
        if tag_id is None:
            grouped.setdefault(book_id, [])
            continue
        grouped[book_id].append(schemas.RelatedRef(id=tag_id, name=tag_name))
    return dict(grouped)


def _load_tags(db: Session, book_ids: list[int]) -> dict[int, list[schemas.RelatedRef]]:
    if not book_ids:
        return {}
    rows = (
        db.query(models.BookTag.book_id, models.Tag.id, models.Tag.name)
        .join(models.Tag, models.Tag.id == models.BookTag.tag_id)
        .filter(models.BookTag.book_id.in_(book_ids))
        .order_by(models.BookTag.book_id, models.Tag.name)
        .all()
    )
    return group_tags(rows, book_ids)


def _to_book_out(book: models.Book, tags: list[schemas.RelatedRef]) -> schemas.BookOut:
    return schemas.BookOut(
        id=book.id,
        title=book.title,
        description=book.description,
        price=book.price,
        thumbnail=book.thumbnail,
        owner_id=book.owner_id,
        category=schemas.RelatedRef.model_validate(book.category),
        author=schemas.RelatedRef.model_validate(book.author) if book.author else None,
        tags=tags,
        created_at=book.created_at,
        updated_at=book.updated_at,
    )


def _with_relations(db: Session):
    return db.query(models.Book).options(
        joinedload(models.Book.category),
        joinedload(models.Book.author),
    )


def _unique(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(ids))


def _ensure_references(
    db: Session,
    category_id: Optional[int] = None,
    author_id: Optional[int] = None,
    tag_ids: Optional[list[int]] = None,
) -> None:
    if category_id is not None and db.get(models.Category, category_id) is None:
        raise NotFound("Category not found")
    if author_id is not None and db.get(models.Author, author_id) is None:
        raise NotFound("Author not found")
    if tag_ids:
        found = {
            tag_id
            for (tag_id,) in db.query(models.Tag.id).filter(models.Tag.id.in_(tag_ids)).all()
        }
        missing = [tag_id for tag_id in tag_ids if tag_id not in found]
        if missing:
            raise NotFound(f"Tags not found: {', '.join(str(t) for t in missing)}")


def _get_owned_book(db: Session, caller_id: int, book_id: int) -> models.Book:
    book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not book:
        raise NotFound("Book not found")
    if book.owner_id != caller_id:
        raise Forbidden()
    return book


def _store_thumbnail(storage: ThumbnailStorage, upload: ThumbnailUpload) -> str:
    content_type = validate_thumbnail_type(upload.content_type)
    return storage.store(upload.content, content_type, upload.filename)


def get_book(db: Session, book_id: int) -> schemas.BookOut:
    book = _with_relations(db).filter(models.Book.id == book_id).first()
    if not book:
        raise NotFound("Book not found")
    tags = _load_tags(db, [book.id])
    return _to_book_out(book, tags[book.id])


def _conditions(query: schemas.BookQuery) -> list:
    conditions = []
    if query.search:
        conditions.append(models.Book.title.icontains(query.search, autoescape=True))
    if query.min_price is not None:
        conditions.append(models.Book.price >= query.min_price)
    if query.max_price is not None:
        conditions.append(models.Book.price <= query.max_price)
    if query.category_id is not None:
        conditions.append(models.Book.category_id == query.category_id)
    if query.owner_id is not None:
        conditions.append(models.Book.owner_id == query.owner_id)
    return conditions


def list_books(db: Session, query: schemas.BookQuery) -> schemas.BookPage | schemas.BookList:
    if (
        query.min_price is not None
        and query.max_price is not None
        and query.min_price > query.max_price
    ):
        raise ValidationError("min_price must not be greater than max_price")

    conditions = _conditions(query)

    total_count = db.query(func.count(models.Book.id)).filter(*conditions).scalar() or 0

    order = models.Book.title.desc() if query.sort == "desc" else models.Book.title.asc()
    books = (
        _with_relations(db)
        .filter(*conditions)
        .order_by(order, models.Book.id.asc())
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
        .all()
    )

    tags = _load_tags(db, [book.id for book in books])
    items = [_to_book_out(book, tags[book.id]) for book in books]

    if query.paginated:
        return schemas.BookPage(
            items=items,
            total_count=total_count,
            limit=query.limit,
            page=query.page,
            total_pages=math.ceil(total_count / query.limit),
        )
    return schemas.BookList(items=items, total_count=total_count)


def create_book(
    db: Session,
    storage: ThumbnailStorage,
    owner_id: int,
    data: schemas.BookCreate,
    thumbnail: Optional[ThumbnailUpload] = None,
) -> schemas.BookOut:
    tag_ids = _unique(data.tags)
    _ensure_references(db, data.category_id, data.author_id, tag_ids)

    thumbnail_path = _store_thumbnail(storage, thumbnail) if thumbnail else None

    book = models.Book(
        title=data.title,
        description=data.description,
        price=data.price,
        category_id=data.category_id,
        author_id=data.author_id,
        owner_id=owner_id,
        thumbnail=thumbnail_path,
    )
    book.tag_links = [models.BookTag(tag_id=tag_id) for tag_id in tag_ids]
    db.add(book)
    try:
        db.commit()
    except Exception:
        db.rollback()
        storage.delete(thumbnail_path)
        raise
    db.refresh(book)

    logger.info("User %s created book %s", owner_id, book.id)
    return get_book(db, book.id)


def edit_book(
    db: Session,
    storage: ThumbnailStorage,
    caller_id: int,
    book_id: int,
    data: schemas.BookUpdate,
    thumbnail: Optional[ThumbnailUpload] = None,
) -> schemas.BookOut:
    book = _get_owned_book(db, caller_id, book_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"tags"})
    tag_ids = _unique(data.tags) if data.tags is not None else None
    _ensure_references(db, changes.get("category_id"), changes.get("author_id"), tag_ids)

    old_thumbnail = book.thumbnail
    new_thumbnail = _store_thumbnail(storage, thumbnail) if thumbnail else None

    for field, value in changes.items():
        setattr(book, field, value)
    if new_thumbnail:
        book.thumbnail = new_thumbnail

    if tag_ids is not None:
        # replace the whole set; an empty list clears it
        book.tag_links = [link for link in book.tag_links if link.tag_id in tag_ids]
        linked = {link.tag_id for link in book.tag_links}
        for tag_id in tag_ids:
            if tag_id not in linked:
                book.tag_links.append(models.BookTag(tag_id=tag_id))

    book.updated_at = datetime.utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        storage.delete(new_thumbnail)
        raise

    if new_thumbnail and old_thumbnail:
        storage.delete(old_thumbnail)

    return get_book(db, book_id)


def delete_book(
    db: Session, storage: ThumbnailStorage, caller_id: int, book_id: int
) -> None:
    book = _get_owned_book(db, caller_id, book_id)
    thumbnail = book.thumbnail

    db.delete(book)
    db.commit()

    storage.delete(thumbnail)
    logger.info("User %s deleted book %s", caller_id, book_id)
