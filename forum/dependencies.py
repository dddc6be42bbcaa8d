from typing import Annotated

from fastapi import Depends, HTTPException, Path, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from forum.config import settings
from forum.database import get_db
from forum.models import User
from forum.schemas import MAX_ID
from forum.security import decode_access_token

# Path parameter for a row id; out-of-range values answer 400 before any query.
EntityId = Annotated[int, Path(ge=1, le=MAX_ID)]


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters for the post feed.

    Attributes
    ----------
    page_number:
        0-based page index; negative or oversized values are rejected.
    n_per_page:
        Number of items per page; values above ``settings.MAX_PAGE_SIZE``
        are rejected with 400.
    sort_by:
        ``"views"`` to rank by view count; ``"created_at"`` (the default)
        sorts newest first.
    author_id:
        Restrict the feed to one author's posts.
    offset:
        Computed SQL OFFSET, ``page_number * n_per_page``.
    """

    def __init__(
        self,
        page_number: int = Query(
            0,
            ge=0,
            le=MAX_ID,
            description="Page index (0-based).",
        ),
        n_per_page: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of posts per page.",
        ),
        sort_by: str | None = Query(
            None,
            pattern="^(created_at|views)$",
            description="'views' sorts by view count, default is newest first.",
        ),
        author_id: int | None = Query(
            None,
            ge=1,
            le=MAX_ID,
            description="Only list posts written by this user.",
        ),
    ) -> None:
        self.page_number = page_number
        self.n_per_page = min(n_per_page, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.author_id = author_id

    @property
    def offset(self) -> int:
        return self.page_number * self.n_per_page


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user or answer 401."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise unauthorized

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return user
