"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Every mutation is one atomic statement: the author-restricted edit is
  a conditional ``UPDATE ... WHERE id = :id AND author_id = :requester``,
  the view counter is ``view_count = view_count + 1`` and the movie-post
  upsert is a conflict-ignoring INSERT on the unique ``resource_id``.
- Posts are never deleted; ``soft_delete_post`` flips ``visible`` and
  every read below filters on it.
- List reads compute comment and like counts with correlated scalar
  subqueries and load the author with ``joinedload`` so a page costs two
  statements (COUNT + SELECT) regardless of its size.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from forum.database import insert_ignoring_conflicts
from forum.exceptions import AuthorizationError, NotFoundError, ValidationError
from forum.models import Comment, Post, PostType, User, post_likes
from forum.schemas import PaginatedPosts, PostCreate, PostUpdate
from forum.services import likes

logger = logging.getLogger(__name__)

EMPTY_POST_MESSAGE = "Title and content cannot be empty!"

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def _author_profile(author: User | None) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "name": author.display_name or author.username,
        "avatar": author.avatar,
    }


def _post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "hashtag": post.hashtag,
        "bg_img": post.bg_img,
        "post_type": post.post_type,
        "resource_id": post.resource_id,
        "view_count": post.view_count,
        "visible": post.visible,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
        "author_id": post.author_id,
    }


def _visible_comment_count():
    return (
        select(func.count(Comment.id))
        .where(Comment.post_id == Post.id, Comment.visible.is_(True))
        .correlate(Post)
        .scalar_subquery()
    )


def _like_count():
    return (
        select(func.count())
        .select_from(post_likes)
        .where(post_likes.c.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )


def _require_title_and_content(title: str, content: str) -> None:
    if not title.strip() or not content.strip():
        raise ValidationError(EMPTY_POST_MESSAGE)


async def _post_detail(db: AsyncSession, post: Post) -> dict:
    data = _post_to_dict(post)
    data["likes"] = await likes.get_likes(db, post_likes, post.id)
    count_q = select(func.count(Comment.id)).where(
        Comment.post_id == post.id, Comment.visible.is_(True)
    )
    data["comment_count"] = (await db.execute(count_q)).scalar_one()
    return data


async def _get_visible_post(db: AsyncSession, post_id: int) -> Post | None:
    result = await db.execute(
        select(Post)
        .where(Post.id == post_id, Post.visible.is_(True))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, author_id: int, data: PostCreate) -> dict:
    """
    Store a new user post written by *author_id* and return its detail dict.

    Raises ValidationError when the title or content is blank; nothing
    is written in that case.
    """
    _require_title_and_content(data.title, data.content)

    post = Post(
        title=data.title,
        content=data.content,
        hashtag=data.hashtag,
        bg_img=data.bg_img,
        author_id=author_id,
        post_type=PostType.USER_POST.value,
        created_at=datetime.now(timezone.utc),
    )
    db.add(post)
    await db.flush()
    logger.info("Post %d created by user %d", post.id, author_id)
    return await _post_detail(db, post)


async def create_movie_post(db: AsyncSession, resource_id: str) -> dict:
    """
    Find or create the movie post keyed by *resource_id*.

    The insert ignores unique-key conflicts, so concurrent calls for the
    same resource converge on a single row; the row is then read back.
    A movie post that was soft-deleted stays hidden: NotFoundError.
    """
    if not resource_id.strip():
        raise ValidationError("Resource id cannot be empty!")

    stmt = insert_ignoring_conflicts(db, Post.__table__).values(
        resource_id=resource_id,
        post_type=PostType.MOVIE_POST.value,
        created_at=datetime.now(timezone.utc),
    )
    await db.execute(stmt)

    result = await db.execute(
        select(Post)
        .where(Post.resource_id == resource_id)
        .execution_options(populate_existing=True)
    )
    post = result.scalar_one()
    if not post.visible:
        raise NotFoundError("Post not found")
    return await _post_detail(db, post)


async def get_posts(
    db: AsyncSession,
    page_number: int = 0,
    n_per_page: int = 20,
    sort_by: str | None = None,
    author_id: int | None = None,
) -> PaginatedPosts:
    """
    Return one page of visible posts with author profile, comment count
    and like count per item.

    Without *author_id* only user posts are listed (movie posts have no
    author and are reached through their resource); with it, every
    visible post by that author is listed.
    """
    if author_id is None:
        criteria = [Post.visible.is_(True), Post.post_type == PostType.USER_POST.value]
    else:
        criteria = [Post.visible.is_(True), Post.author_id == author_id]

    count_q = select(func.count()).select_from(Post).where(*criteria)
    total: int = (await db.execute(count_q)).scalar_one()

    if sort_by == "views":
        order = (desc(Post.view_count), desc(Post.created_at), desc(Post.id))
    else:
        order = (desc(Post.created_at), desc(Post.id))

    posts_q = (
        select(
            Post,
            _visible_comment_count().label("comment_count"),
            _like_count().label("like_count"),
        )
        .where(*criteria)
        .options(joinedload(Post.author))
        .order_by(*order)
        .offset(page_number * n_per_page)
        .limit(n_per_page)
    )
    rows = (await db.execute(posts_q)).all()

    items = []
    for post, comment_count, like_count in rows:
        item = _post_to_dict(post)
        item["author"] = _author_profile(post.author)
        item["comment_count"] = comment_count
        item["like_count"] = like_count
        items.append(item)

    return PaginatedPosts(
        items=items,
        total=total,
        page_number=page_number,
        n_per_page=n_per_page,
        pages=math.ceil(total / n_per_page) if total > 0 else 0,
    )


async def get_post_and_increment_view(db: AsyncSession, post_id: int) -> dict | None:
    """
    Atomically add one view to a visible post and return its detail dict.

    Returns None when the post does not exist or has been soft-deleted.
    """
    result = await db.execute(
        update(Post)
        .where(Post.id == post_id, Post.visible.is_(True))
        .values(view_count=Post.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None

    post = await _get_visible_post(db, post_id)
    return await _post_detail(db, post)


async def update_post(
    db: AsyncSession, post_id: int, requester_id: int, data: PostUpdate
) -> dict | None:
    """
    Replace the editable fields of a post, provided *requester_id* wrote it.

    Raises ValidationError for a blank title/content and
    AuthorizationError when the post exists but belongs to someone else.
    Returns None when the post does not exist or is hidden.
    """
    _require_title_and_content(data.title, data.content)

    result = await db.execute(
        update(Post)
        .where(
            Post.id == post_id,
            Post.author_id == requester_id,
            Post.visible.is_(True),
        )
        .values(
            title=data.title,
            content=data.content,
            hashtag=data.hashtag,
            bg_img=data.bg_img,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if await _get_visible_post(db, post_id) is None:
            return None
        logger.info("User %d refused edit of post %d", requester_id, post_id)
        raise AuthorizationError("Only author can update post!")

    post = await _get_visible_post(db, post_id)
    return await _post_detail(db, post)


async def soft_delete_post(db: AsyncSession, post_id: int) -> bool:
    """
    Hide the post identified by *post_id*; the row stays in storage.

    Returns False when the post does not exist.
    """
    result = await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(visible=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False
    logger.info("Post %d hidden", post_id)
    return True


async def like_post(db: AsyncSession, post_id: int, user_id: int) -> bool:
    """Add *user_id* to the post's like set; False when the post is missing."""
    if await _get_visible_post(db, post_id) is None:
        return False
    await likes.add_like(db, post_likes, post_id, user_id)
    return True


async def unlike_post(db: AsyncSession, post_id: int, user_id: int) -> bool:
    """Remove *user_id* from the like set (no-op for non-members)."""
    if await _get_visible_post(db, post_id) is None:
        return False
    await likes.remove_like(db, post_likes, post_id, user_id)
    return True


async def check_like(db: AsyncSession, post_id: int, user_id: int) -> bool | None:
    if await _get_visible_post(db, post_id) is None:
        return None
    return await likes.has_liked(db, post_likes, post_id, user_id)


async def get_post_likes(db: AsyncSession, post_id: int) -> list[int] | None:
    if await _get_visible_post(db, post_id) is None:
        return None
    return await likes.get_likes(db, post_likes, post_id)
