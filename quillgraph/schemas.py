from pydantic import BaseModel, Field


# --- User ---

class UserCreate(BaseModel):
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=150)


class UserUpdate(BaseModel):
    email: str | None = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str | None = Field(None, min_length=6, max_length=128)
    name: str | None = Field(None, min_length=1, max_length=150)


class UserLogin(BaseModel):
    email: str
    password: str


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str
    published: bool = False


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = None
    published: bool | None = None


# --- Book ---

class BookCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str
    published: bool = False


class BookUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    published: bool | None = None


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1)
    post_id: str
    published: bool = False


class CommentUpdate(BaseModel):
    content: str | None = Field(None, min_length=1)
    published: bool | None = None


# --- Review ---

class ReviewCreate(BaseModel):
    comment: str | None = None
    rating: int = Field(ge=1, le=5)
    book_id: str
    published: bool = False


class ReviewUpdate(BaseModel):
    comment: str | None = None
    rating: int | None = Field(None, ge=1, le=5)
    published: bool | None = None
