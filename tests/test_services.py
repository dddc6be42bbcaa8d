"""
Direct service-layer tests: exercises business logic without HTTP overhead.

These call the service functions with a database session and check the
properties the routers rely on: validation before any write, author-only
edits, atomic view counting, movie-post upserts, soft delete and the
set semantics of likes.
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from forum.exceptions import AuthorizationError, NotFoundError, ValidationError
from forum.models import Comment, Post, User, post_likes
from forum.schemas import CommentCreate, CommentUpdate, PostCreate, PostUpdate
from forum.services import comment_service, likes, post_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, username: str = "svcuser") -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        display_name="Service User",
        password_hash="not-a-real-hash",
    )
    db.add(user)
    await db.flush()
    return user


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ---------------------------------------------------------------------------
# post_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_posts_empty(db_session: AsyncSession):
    result = await post_service.get_posts(db_session)
    assert result.total == 0
    assert result.items == []
    assert result.pages == 0


@pytest.mark.asyncio
async def test_create_post_blank_content_stores_nothing(db_session: AsyncSession):
    user = await _create_user(db_session)
    with pytest.raises(ValidationError):
        await post_service.create_post(db_session, user.id, PostCreate(title="Title", content="  \n "))
    assert await _count(db_session, Post) == 0


@pytest.mark.asyncio
async def test_movie_post_upsert_yields_one_record(db_session: AsyncSession):
    first = await post_service.create_movie_post(db_session, "tt0133093")
    second = await post_service.create_movie_post(db_session, "tt0133093")
    other = await post_service.create_movie_post(db_session, "tt0120737")

    assert first["id"] == second["id"]
    assert other["id"] != first["id"]
    assert await _count(db_session, Post) == 2


@pytest.mark.asyncio
async def test_movie_post_blank_resource(db_session: AsyncSession):
    with pytest.raises(ValidationError):
        await post_service.create_movie_post(db_session, "   ")


@pytest.mark.asyncio
async def test_view_count_increments_exactly_n(db_session: AsyncSession):
    user = await _create_user(db_session)
    post = await post_service.create_post(db_session, user.id, PostCreate(title="T", content="C"))

    for _ in range(7):
        result = await post_service.get_post_and_increment_view(db_session, post["id"])
    assert result["view_count"] == 7


@pytest.mark.asyncio
async def test_increment_on_missing_post(db_session: AsyncSession):
    assert await post_service.get_post_and_increment_view(db_session, 12345) is None


@pytest.mark.asyncio
async def test_non_author_update_raises_and_keeps_record(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    intruder = await _create_user(db_session, "intruder")
    post = await post_service.create_post(db_session, author.id, PostCreate(title="Orig", content="Body"))

    with pytest.raises(AuthorizationError):
        await post_service.update_post(
            db_session, post["id"], intruder.id, PostUpdate(title="New", content="New")
        )

    stored = await db_session.get(Post, post["id"], populate_existing=True)
    assert stored.title == "Orig"
    assert stored.content == "Body"


@pytest.mark.asyncio
async def test_update_hidden_post_is_not_found(db_session: AsyncSession):
    author = await _create_user(db_session)
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    await post_service.soft_delete_post(db_session, post["id"])

    result = await post_service.update_post(
        db_session, post["id"], author.id, PostUpdate(title="T2", content="C2")
    )
    assert result is None


@pytest.mark.asyncio
async def test_soft_delete_keeps_row(db_session: AsyncSession):
    user = await _create_user(db_session)
    post = await post_service.create_post(db_session, user.id, PostCreate(title="T", content="C"))

    assert await post_service.soft_delete_post(db_session, post["id"]) is True
    assert await _count(db_session, Post) == 1
    stored = await db_session.get(Post, post["id"], populate_existing=True)
    assert stored.visible is False
    assert (await post_service.get_posts(db_session)).total == 0


@pytest.mark.asyncio
async def test_soft_delete_missing_post(db_session: AsyncSession):
    assert await post_service.soft_delete_post(db_session, 12345) is False


@pytest.mark.asyncio
async def test_get_posts_author_filter_includes_movie_posts_only_when_authored(db_session: AsyncSession):
    user = await _create_user(db_session)
    await post_service.create_post(db_session, user.id, PostCreate(title="A", content="C"))
    await post_service.create_movie_post(db_session, "tt0000001")

    assert (await post_service.get_posts(db_session, author_id=user.id)).total == 1
    assert (await post_service.get_posts(db_session)).total == 1


@pytest.mark.asyncio
async def test_post_like_set_semantics(db_session: AsyncSession):
    user = await _create_user(db_session)
    post = await post_service.create_post(db_session, user.id, PostCreate(title="T", content="C"))

    await post_service.like_post(db_session, post["id"], user.id)
    await post_service.like_post(db_session, post["id"], user.id)
    assert await post_service.get_post_likes(db_session, post["id"]) == [user.id]
    assert await post_service.check_like(db_session, post["id"], user.id) is True

    await post_service.unlike_post(db_session, post["id"], user.id)
    await post_service.unlike_post(db_session, post["id"], user.id)
    assert await post_service.get_post_likes(db_session, post["id"]) == []
    assert await post_service.check_like(db_session, post["id"], user.id) is False


@pytest.mark.asyncio
async def test_like_helpers_report_membership_changes(db_session: AsyncSession):
    user = await _create_user(db_session)
    post = await post_service.create_post(db_session, user.id, PostCreate(title="T", content="C"))

    assert await likes.toggle_like(db_session, post_likes, post["id"], user.id) is True
    assert await likes.toggle_like(db_session, post_likes, post["id"], user.id) is False
    assert await likes.remove_like(db_session, post_likes, post["id"], user.id) is False


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_comment_on_missing_post(db_session: AsyncSession):
    user = await _create_user(db_session)
    with pytest.raises(NotFoundError):
        await comment_service.create_comment(db_session, user.id, CommentCreate(text="hi", post_id=999))
    assert await _count(db_session, Comment) == 0


@pytest.mark.asyncio
async def test_toggle_comment_like_round_trip(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    fan = await _create_user(db_session, "fan")
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(text="hi", post_id=post["id"])
    )
    await comment_service.toggle_comment_like(db_session, comment["id"], author.id)
    before = await comment_service.toggle_comment_like(db_session, comment["id"], fan.id)
    assert sorted(before) == sorted([author.id, fan.id])

    await comment_service.toggle_comment_like(db_session, comment["id"], fan.id)
    after = await comment_service.toggle_comment_like(db_session, comment["id"], fan.id)
    assert sorted(after) == sorted(before)


@pytest.mark.asyncio
async def test_update_comment_by_non_author(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    other = await _create_user(db_session, "other")
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(text="hi", post_id=post["id"])
    )

    with pytest.raises(AuthorizationError):
        await comment_service.update_comment(db_session, comment["id"], other.id, CommentUpdate(text="x"))
    assert (await comment_service.get_comment(db_session, comment["id"]))["text"] == "hi"


@pytest.mark.asyncio
async def test_soft_deleted_comment_hidden_from_reads(db_session: AsyncSession):
    author = await _create_user(db_session)
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(text="hi", post_id=post["id"])
    )

    assert await comment_service.soft_delete_comment(db_session, comment["id"]) is True
    assert await comment_service.get_comment(db_session, comment["id"]) is None
    assert await comment_service.get_comments(db_session) == []
    assert await _count(db_session, Comment) == 1
    assert await comment_service.toggle_comment_like(db_session, comment["id"], author.id) is None


@pytest.mark.asyncio
async def test_comments_follow_post_visibility(db_session: AsyncSession):
    author = await _create_user(db_session)
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(text="hi", post_id=post["id"])
    )
    await post_service.soft_delete_post(db_session, post["id"])

    assert await comment_service.get_comments(db_session) == []
    assert await comment_service.get_comment(db_session, comment["id"]) is None
    assert await comment_service.toggle_comment_like(db_session, comment["id"], author.id) is None


@pytest.mark.asyncio
async def test_toggle_locks_comment_row():
    stmt = comment_service._visible_comment_query(1, lock=True)
    assert "FOR UPDATE OF comments" in str(stmt.compile(dialect=postgresql.dialect()))
    unlocked = comment_service._visible_comment_query(1)
    assert "FOR UPDATE" not in str(unlocked.compile(dialect=postgresql.dialect()))


@pytest.mark.asyncio
async def test_update_comment_checks_owner_before_mention(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    other = await _create_user(db_session, "other")
    post = await post_service.create_post(db_session, author.id, PostCreate(title="T", content="C"))
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(text="hi", post_id=post["id"])
    )

    with pytest.raises(AuthorizationError):
        await comment_service.update_comment(
            db_session, comment["id"], other.id, CommentUpdate(text="x", mention_user_id=424242)
        )
    with pytest.raises(NotFoundError):
        await comment_service.update_comment(
            db_session, comment["id"], author.id, CommentUpdate(text="x", mention_user_id=424242)
        )


@pytest.mark.asyncio
async def test_hidden_movie_post_stays_hidden(db_session: AsyncSession):
    movie = await post_service.create_movie_post(db_session, "tt0047478")
    await post_service.soft_delete_post(db_session, movie["id"])

    with pytest.raises(NotFoundError):
        await post_service.create_movie_post(db_session, "tt0047478")
    assert await _count(db_session, Post) == 1
