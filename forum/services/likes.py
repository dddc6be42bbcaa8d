"""
Set semantics shared by the post and comment like lists.

Both like tables have a composite primary key on (target, user), so
membership is unique in storage and every helper here is a single
statement:

- add    -> INSERT ... ON CONFLICT DO NOTHING
- remove -> DELETE
- toggle -> DELETE, and INSERT only when nothing was deleted
"""
from sqlalchemy import Table, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from forum.database import insert_ignoring_conflicts


def _target_column(table: Table):
    # The first primary-key column is the liked entity (post_id / comment_id).
    return table.primary_key.columns.values()[0]


async def add_like(db: AsyncSession, table: Table, target_id: int, user_id: int) -> None:
    target = _target_column(table)
    stmt = insert_ignoring_conflicts(db, table).values(
        {target.name: target_id, "user_id": user_id}
    )
    await db.execute(stmt)


async def remove_like(db: AsyncSession, table: Table, target_id: int, user_id: int) -> bool:
    """Remove *user_id* from the set; True when it was a member."""
    target = _target_column(table)
    result = await db.execute(
        delete(table).where(target == target_id, table.c.user_id == user_id)
    )
    return result.rowcount > 0


async def toggle_like(db: AsyncSession, table: Table, target_id: int, user_id: int) -> bool:
    """
    Flip membership of *user_id*; returns True when the user now likes the target.

    The delete and the insert are two statements.  Callers lock the liked
    row first (see ``comment_service.toggle_comment_like``) so concurrent
    toggles by one user cannot both report a like.
    """
    if await remove_like(db, table, target_id, user_id):
        return False
    await add_like(db, table, target_id, user_id)
    return True


async def has_liked(db: AsyncSession, table: Table, target_id: int, user_id: int) -> bool:
    target = _target_column(table)
    result = await db.execute(
        select(table.c.user_id).where(target == target_id, table.c.user_id == user_id)
    )
    return result.first() is not None


async def get_likes(db: AsyncSession, table: Table, target_id: int) -> list[int]:
    """Return the like set of one target, earliest like first."""
    target = _target_column(table)
    result = await db.execute(
        select(table.c.user_id)
        .where(target == target_id)
        .order_by(table.c.created_at, table.c.user_id)
    )
    return list(result.scalars().all())


async def get_likes_for(db: AsyncSession, table: Table, target_ids: list[int]) -> dict[int, list[int]]:
    """Batch variant of ``get_likes`` used by list views (one query for N targets)."""
    likes: dict[int, list[int]] = {target_id: [] for target_id in target_ids}
    if not target_ids:
        return likes
    target = _target_column(table)
    result = await db.execute(
        select(target, table.c.user_id)
        .where(target.in_(target_ids))
        .order_by(table.c.created_at, table.c.user_id)
    )
    for target_id, user_id in result.all():
        likes[target_id].append(user_id)
    return likes
