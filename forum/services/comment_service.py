"""
Comment service: comments attached to a visible post.

Comments follow the same rules as posts: edits are restricted to the
author through a conditional UPDATE, deletion only hides the row, and
likes use the shared set helpers (here as a toggle).
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from forum.exceptions import AuthorizationError, NotFoundError
from forum.models import Comment, Post, User, comment_likes
from forum.schemas import CommentCreate, CommentUpdate
from forum.services import likes

logger = logging.getLogger(__name__)


def _comment_to_dict(comment: Comment, like_set: list[int]) -> dict:
    return {
        "id": comment.id,
        "text": comment.text,
        "author_id": comment.author_id,
        "post_id": comment.post_id,
        "mention_user_id": comment.mention_user_id,
        "visible": comment.visible,
        "likes": like_set,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
    }


def _on_visible_post():
    # A comment is only reachable while its post is visible.
    return Comment.post_id.in_(select(Post.id).where(Post.visible.is_(True)))


def _visible_comment_query(comment_id: int, lock: bool = False):
    q = (
        select(Comment)
        .where(Comment.id == comment_id, Comment.visible.is_(True), _on_visible_post())
        .execution_options(populate_existing=True)
    )
    if lock:
        # Serialises concurrent toggles on the same comment (no-op on SQLite).
        q = q.with_for_update(of=Comment)
    return q


async def _get_visible_comment(db: AsyncSession, comment_id: int, lock: bool = False) -> Comment | None:
    result = await db.execute(_visible_comment_query(comment_id, lock))
    return result.scalar_one_or_none()


async def _check_mention(db: AsyncSession, mention_user_id: int | None) -> None:
    if mention_user_id is not None and await db.get(User, mention_user_id) is None:
        raise NotFoundError("Mentioned user not found")


async def create_comment(db: AsyncSession, author_id: int, data: CommentCreate) -> dict:
    """
    Attach a new comment by *author_id* to the post ``data.post_id``.

    Raises NotFoundError when the post is missing or hidden, or
    when the mentioned user does not exist.
    """
    post = await db.execute(
        select(Post.id).where(Post.id == data.post_id, Post.visible.is_(True))
    )
    if post.scalar_one_or_none() is None:
        raise NotFoundError("Post not found")
    await _check_mention(db, data.mention_user_id)

    comment = Comment(
        text=data.text,
        author_id=author_id,
        post_id=data.post_id,
        mention_user_id=data.mention_user_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(comment)
    await db.flush()
    logger.info("Comment %d added to post %d by user %d", comment.id, data.post_id, author_id)
    return _comment_to_dict(comment, [])


async def get_comments(db: AsyncSession, post_id: int | None = None) -> list[dict]:
    """Return visible comments on visible posts, oldest first, optionally for one post."""
    q = select(Comment).where(Comment.visible.is_(True), _on_visible_post())
    if post_id is not None:
        q = q.where(Comment.post_id == post_id)
    q = q.order_by(Comment.created_at, Comment.id)

    comments = (await db.execute(q)).scalars().all()
    like_sets = await likes.get_likes_for(db, comment_likes, [c.id for c in comments])
    return [_comment_to_dict(c, like_sets[c.id]) for c in comments]


async def get_comment(db: AsyncSession, comment_id: int) -> dict | None:
    comment = await _get_visible_comment(db, comment_id)
    if comment is None:
        return None
    return _comment_to_dict(comment, await likes.get_likes(db, comment_likes, comment_id))


async def update_comment(
    db: AsyncSession, comment_id: int, requester_id: int, data: CommentUpdate
) -> dict | None:
    """
    Replace the text and mention of a comment written by *requester_id*.

    Returns None when the comment does not exist or is hidden; raises
    AuthorizationError when it belongs to someone else.  Ownership is
    decided before the mentioned user is looked up.
    """
    comment = await _get_visible_comment(db, comment_id)
    if comment is None:
        return None
    if comment.author_id != requester_id:
        raise AuthorizationError("Only author can update comment!")
    await _check_mention(db, data.mention_user_id)

    result = await db.execute(
        update(Comment)
        .where(
            Comment.id == comment_id,
            Comment.author_id == requester_id,
            Comment.visible.is_(True),
        )
        .values(
            text=data.text,
            mention_user_id=data.mention_user_id,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Hidden between the read and the write.
        return None

    return await get_comment(db, comment_id)


async def soft_delete_comment(db: AsyncSession, comment_id: int) -> bool:
    result = await db.execute(
        update(Comment)
        .where(Comment.id == comment_id)
        .values(visible=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False
    logger.info("Comment %d hidden", comment_id)
    return True


async def toggle_comment_like(db: AsyncSession, comment_id: int, user_id: int) -> list[int] | None:
    """
    Like the comment if *user_id* has not yet, unlike it otherwise, and
    return the resulting like set.  None when the comment is missing.

    The comment row is locked ``FOR UPDATE`` first, so the delete and
    the conditional insert of the toggle run as one unit per comment
    until the request's transaction ends.
    """
    if await _get_visible_comment(db, comment_id, lock=True) is None:
        return None
    await likes.toggle_like(db, comment_likes, comment_id, user_id)
    return await likes.get_likes(db, comment_likes, comment_id)
