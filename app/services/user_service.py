"""
User service: the identity collaborator of the Post aggregate.

Besides plain user CRUD it provides ``get_profiles``, the hydration
lookup that turns identity references stored on posts, comments and likes
into display projections with one batched query.
"""
import logging
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound
from app.models import Post, User
from app.repositories import parse_identifier
from app.schemas import UserCreate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_profile(user: User) -> dict:
    """Display-safe projection of a user (no email)."""
    return {"id": user.id, "username": user.username, "avatar": user.avatar}


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "avatar": user.avatar,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_profiles(db: AsyncSession, user_ids: Iterable[str]) -> dict[str, dict]:
    """
    Resolve *user_ids* to ``{id: profile}``.

    Unknown ids are simply absent from the result; callers decide how to
    render a dangling reference.
    """
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user_to_profile(user) for user in result.scalars().all()}


async def get_user(db: AsyncSession, user_id: str) -> dict:
    """Return the profile of *user_id* with the number of posts they own."""
    user = await db.get(User, parse_identifier(user_id))
    if user is None:
        raise NotFound()

    posts_count = (
        await db.execute(
            select(func.count()).select_from(Post).where(Post.author_id == user.id)
        )
    ).scalar_one()
    data = _user_to_dict(user)
    data["posts_count"] = posts_count
    return data


async def user_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user.

    Username and email uniqueness is enforced by the database; the
    resulting ``IntegrityError`` propagates and is rendered as
    ``"<Field> already exists"`` by the error normaliser.
    """
    user = User(
        username=data.username.strip(),
        email=data.email.strip().lower(),
        avatar=data.avatar or "",
    )
    db.add(user)
    await db.flush()
    logger.info("Created user id=%s username=%s", user.id, user.username)
    return _user_to_dict(user)
