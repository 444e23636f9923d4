from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from bookshop import schemas
from bookshop.database import get_db
from bookshop.dependencies import get_current_user_id, get_thumbnail_storage
from bookshop.errors import ValidationError
from bookshop.services import books as books_service
from bookshop.services import catalog as catalog_service
from bookshop.storage import ThumbnailStorage, ThumbnailUpload

router = APIRouter(prefix="/books", tags=["Books"])


def _parse_tag_ids(values: Optional[list[str]]) -> Optional[list[int]]:
    # A present-but-blank "tags" field means "no tags"
    if values is None:
        return None
    tag_ids = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                tag_ids.append(int(part))
            except ValueError as exc:
                raise ValidationError(f"Invalid tag id: {part}") from exc
    return tag_ids


def _read_thumbnail(thumbnail: Optional[UploadFile]) -> Optional[ThumbnailUpload]:
    if thumbnail is None or not thumbnail.filename:
        return None
    content = thumbnail.file.read()
    if not content:
        return None
    return ThumbnailUpload(
        content=content,
        content_type=thumbnail.content_type,
        filename=thumbnail.filename,
    )


# Categories
@router.get("/categories", response_model=schemas.Envelope[list[schemas.CategoryOut]])
def get_categories(db: Session = Depends(get_db)):
    return {"success": True, "data": catalog_service.list_categories(db)}


@router.post(
    "/categories",
    response_model=schemas.Envelope[schemas.CategoryOut],
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    payload: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"success": True, "data": catalog_service.create_category(db, payload)}


# Authors
@router.get("/authors", response_model=schemas.Envelope[list[schemas.AuthorOut]])
def get_authors(db: Session = Depends(get_db)):
    return {"success": True, "data": catalog_service.list_authors(db)}


@router.post(
    "/authors",
    response_model=schemas.Envelope[schemas.AuthorOut],
    status_code=status.HTTP_201_CREATED,
)
def create_author(
    payload: schemas.AuthorCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"success": True, "data": catalog_service.create_author(db, payload)}


# Tags
@router.get("/tags", response_model=schemas.Envelope[list[schemas.TagOut]])
def get_tags(db: Session = Depends(get_db)):
    return {"success": True, "data": catalog_service.list_tags(db)}


@router.post(
    "/tags",
    response_model=schemas.Envelope[schemas.TagOut],
    status_code=status.HTTP_201_CREATED,
)
def create_tag(
    payload: schemas.TagCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"success": True, "data": catalog_service.create_tag(db, payload)}


# Books
@router.get("/", response_model=schemas.Envelope[schemas.BookPage | schemas.BookList])
def get_books(
    search: str | None = Query(default=None, max_length=250),
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    category_id: int | None = Query(default=None, ge=1),
    owner_id: int | None = Query(default=None, ge=1),
    sort: Literal["asc", "desc"] = Query(default="asc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    paginated: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    query = schemas.BookQuery(
        search=search,
        min_price=min_price,
        max_price=max_price,
        category_id=category_id,
        owner_id=owner_id,
        sort=sort,
        page=page,
        limit=limit,
        paginated=paginated,
    )
    return {"success": True, "data": books_service.list_books(db, query)}


@router.get("/me", response_model=schemas.Envelope[schemas.BookPage | schemas.BookList])
def get_my_books(
    search: str | None = Query(default=None, max_length=250),
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    category_id: int | None = Query(default=None, ge=1),
    sort: Literal["asc", "desc"] = Query(default="asc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    paginated: bool = Query(default=False),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    query = schemas.BookQuery(
        search=search,
        min_price=min_price,
        max_price=max_price,
        category_id=category_id,
        owner_id=user_id,
        sort=sort,
        page=page,
        limit=limit,
        paginated=paginated,
    )
    return {"success": True, "data": books_service.list_books(db, query)}


@router.get("/{book_id}", response_model=schemas.Envelope[schemas.BookOut])
def get_book(book_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": books_service.get_book(db, book_id)}


@router.post(
    "/",
    response_model=schemas.Envelope[schemas.BookOut],
    status_code=status.HTTP_201_CREATED,
)
def create_book(
    title: str = Form(...),
    price: float = Form(...),
    category_id: int = Form(...),
    author_id: int = Form(...),
    description: str | None = Form(default=None),
    tags: list[str] | None = Form(default=None),
    thumbnail: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    storage: ThumbnailStorage = Depends(get_thumbnail_storage),
    user_id: int = Depends(get_current_user_id),
):
    payload = schemas.BookCreate(
        title=title,
        description=description,
        price=price,
        category_id=category_id,
        author_id=author_id,
        tags=_parse_tag_ids(tags) or [],
    )
    book = books_service.create_book(
        db, storage, user_id, payload, _read_thumbnail(thumbnail)
    )
    return {"success": True, "data": book}


@router.patch("/{book_id}", response_model=schemas.Envelope[schemas.BookOut])
def edit_book(
    book_id: int,
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    price: float | None = Form(default=None),
    category_id: int | None = Form(default=None),
    author_id: int | None = Form(default=None),
    tags: list[str] | None = Form(default=None),
    thumbnail: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    storage: ThumbnailStorage = Depends(get_thumbnail_storage),
    user_id: int = Depends(get_current_user_id),
):
    supplied = {
        "title": title,
        "description": description,
        "price": price,
        "category_id": category_id,
        "author_id": author_id,
        "tags": _parse_tag_ids(tags),
    }
    payload = schemas.BookUpdate(**{key: value for key, value in supplied.items() if value is not None})
    book = books_service.edit_book(
        db, storage, user_id, book_id, payload, _read_thumbnail(thumbnail)
    )
    return {"success": True, "data": book}


@router.delete("/{book_id}", response_model=schemas.MessageResponse)
def delete_book(
    book_id: int,
    db: Session = Depends(get_db),
    storage: ThumbnailStorage = Depends(get_thumbnail_storage),
    user_id: int = Depends(get_current_user_id),
):
    books_service.delete_book(db, storage, user_id, book_id)
    return {"success": True, "message": "Book deleted successfully"}
