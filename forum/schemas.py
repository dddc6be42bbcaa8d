from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

# Largest value an Integer primary key column holds (PostgreSQL int4).
MAX_ID = 2**31 - 1


# --- User ---

class UserBase(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=255)
    display_name: str | None = Field(None, max_length=150)
    avatar: str | None = Field(None, max_length=500)


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)


class UserResponse(UserBase):
    id: int
    is_admin: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthorProfile(BaseModel):
    id: int
    name: str
    avatar: str | None = None


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    hashtag: str | None = Field(None, max_length=100)
    bg_img: str | None = Field(None, max_length=500)


class PostUpdate(PostCreate):
    pass


class MoviePostCreate(BaseModel):
    resource_id: str = Field(min_length=1, max_length=100)


class PostResponse(BaseModel):
    id: int
    title: str | None
    content: str | None
    hashtag: str | None = None
    bg_img: str | None = None
    post_type: str
    resource_id: str | None = None
    view_count: int
    visible: bool
    created_at: datetime | None
    updated_at: datetime | None = None
    author_id: int | None


class PostDetail(PostResponse):
    likes: list[int] = []
    comment_count: int = 0


class PostListItem(PostResponse):
    author: AuthorProfile | None = None
    comment_count: int = 0
    like_count: int = 0


class PaginatedPosts(BaseModel):
    items: list[PostListItem]
    total: int
    page_number: int
    n_per_page: int
    pages: int


class PostLikes(BaseModel):
    post_id: int
    likes: list[int]


class LikeStatus(BaseModel):
    post_id: int
    user_id: int
    liked: bool


# --- Comment ---

class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)
    post_id: int = Field(ge=1, le=MAX_ID)
    mention_user_id: int | None = Field(None, ge=1, le=MAX_ID)


class CommentUpdate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)
    mention_user_id: int | None = Field(None, ge=1, le=MAX_ID)


class CommentResponse(BaseModel):
    id: int
    text: str
    author_id: int
    post_id: int
    mention_user_id: int | None = None
    visible: bool
    likes: list[int] = []
    created_at: datetime | None
    updated_at: datetime | None = None


class CommentLikes(BaseModel):
    comment_id: int
    likes: list[int]


# --- Misc ---

class MessageResponse(BaseModel):
    message: str
