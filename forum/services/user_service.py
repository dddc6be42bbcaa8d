"""
User service: accounts that author, like and get mentioned in content.

Only what the auth dependency needs lives here: registration, password
login and profile lookup.  Role changes (``is_admin``) are an operator
task done directly in the database.
"""
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from forum.exceptions import ConflictError
from forum.models import User
from forum.schemas import UserCreate
from forum.security import create_access_token, hash_password, verify_password


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "avatar": user.avatar,
        "is_admin": user.is_admin,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    user = await db.get(User, user_id)
    if user is None:
        return None
    return _user_to_dict(user)


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user and return its serialised dict.

    Raises ConflictError when the username or email is taken.  The
    unique constraints still guard against a concurrent registration;
    the router translates that IntegrityError into a 409 as well.
    """
    existing = await db.execute(
        select(User.id).where(or_(User.username == data.username, User.email == data.email))
    )
    if existing.first() is not None:
        raise ConflictError("A user with this username or email already exists")

    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
        avatar=data.avatar,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    await db.flush()
    await db.refresh(user, ["created_at"])
    return _user_to_dict(user)


async def authenticate(db: AsyncSession, username: str, password: str) -> str | None:
    """
    Return a bearer token for valid credentials, None otherwise.

    *username* may be a username or an email address.  An exact username
    match wins, because one account's username can equal another
    account's email.
    """
    result = await db.execute(
        select(User)
        .where(or_(User.username == username, User.email == username))
        .order_by(User.username != username)
        .limit(1)
    )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return create_access_token(user.id)
