from datetime import datetime
from typing import Annotated, Generic, Literal, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

T = TypeVar("T")

# books.price is NUMERIC(10, 2)
MIN_PRICE = 0.01
MAX_PRICE = 99_999_999.99


def _check_email_length(value: str) -> str:
    if len(value) > 100:
        raise ValueError("Email must be at most 100 characters")
    return value


Email = Annotated[EmailStr, AfterValidator(_check_email_length)]

# No "@": a login identifier containing one is always an email
Username = Annotated[str, Field(min_length=3, max_length=30, pattern=r"^[^@]+$")]


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Auth
class RegisterRequest(BaseModel):
    username: Username
    email: Email
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    # username or email
    login: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("login")
    @classmethod
    def normalize_email_domain(cls, value: str) -> str:
        # stored emails carry a lowercased domain
        if "@" not in value:
            return value
        local, _, domain = value.rpartition("@")
        return f"{local}@{domain.lower()}"


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserPublic(BaseModel):
    id: int
    username: str
    email: EmailStr
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(TokenPair):
    user: UserPublic


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(BaseModel):
    email: Email
    otp: str = Field(min_length=6, max_length=6)
    new_password: str = Field(min_length=6, max_length=128)
    confirm_password: str = Field(min_length=6, max_length=128)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# Users
class UpdateProfileRequest(BaseModel):
    username: Username | None = None
    email: Email | None = None

    @model_validator(mode="after")
    def has_changes(self):
        if self.username is None and self.email is None:
            raise ValueError("No data has been provided for update")
        return self


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=6, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)
    confirm_password: str = Field(min_length=6, max_length=128)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# Catalog
class CategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str | None = None


class CategoryOut(BaseModel):
    id: int
    name: str
    description: str | None

    model_config = ConfigDict(from_attributes=True)


class AuthorCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    bio: str | None = None


class AuthorOut(BaseModel):
    id: int
    name: str
    bio: str | None

    model_config = ConfigDict(from_attributes=True)


class TagCreate(BaseModel):
    name: str = Field(min_length=2, max_length=30)


class TagOut(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


# Books
class RelatedRef(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class BookCreate(BaseModel):
    title: str = Field(min_length=1, max_length=250)
    description: str | None = Field(default=None, max_length=5000)
    price: float = Field(ge=MIN_PRICE, le=MAX_PRICE)
    category_id: int = Field(ge=1)
    author_id: int = Field(ge=1)
    tags: list[int] = Field(default_factory=list)


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=250)
    description: str | None = Field(default=None, max_length=5000)
    price: float | None = Field(default=None, ge=MIN_PRICE, le=MAX_PRICE)
    category_id: int | None = Field(default=None, ge=1)
    author_id: int | None = Field(default=None, ge=1)
    # None leaves tags untouched, [] clears them
    tags: list[int] | None = None


class BookOut(BaseModel):
    id: int
    title: str
    description: str | None
    price: float
    thumbnail: str | None
    owner_id: int
    category: RelatedRef
    author: RelatedRef | None
    tags: list[RelatedRef]
    created_at: datetime | None
    updated_at: datetime | None


class BookQuery(BaseModel):
    search: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    category_id: int | None = None
    owner_id: int | None = None
    sort: Literal["asc", "desc"] = "asc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=25, ge=1, le=100)
    paginated: bool = False


class BookPage(BaseModel):
    items: list[BookOut]
    total_count: int
    limit: int
    page: int
    total_pages: int


class BookList(BaseModel):
    items: list[BookOut]
    total_count: int
