"""
Post repository: the persistence boundary for the Post aggregate.

A Post is always loaded together with its comments and likes so that the
service can mutate the in-memory aggregate and hand the whole thing back
to ``save``.  Nothing here commits; the request transaction is owned by
``get_db``.
"""
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.errors import MalformedIdentifier
from app.models import Comment, Post, PostLike, utcnow


def parse_identifier(value) -> str:
    """
    Normalise an external identifier to the stored 32-char hex form.

    Raises ``MalformedIdentifier`` when *value* cannot be an id at all.
    """
    try:
        return uuid.UUID(str(value)).hex
    except (TypeError, ValueError, AttributeError):
        raise MalformedIdentifier()


def _aggregate_options():
    return (selectinload(Post.comments), selectinload(Post.likes))


class PostRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, post: Post) -> Post:
        now = utcnow()
        post.created_at = now
        post.updated_at = now
        self.db.add(post)
        await self.db.flush()
        return post

    async def find_by_id(self, post_id: str, refresh: bool = False) -> Post | None:
        """Load the aggregate; *refresh* overwrites state already in the session."""
        q = select(Post).where(Post.id == post_id).options(*_aggregate_options())
        if refresh:
            q = q.execution_options(populate_existing=True)
        result = await self.db.execute(q)
        return result.scalar_one_or_none()

    async def find_paginated(self, offset: int, limit: int) -> list[Post]:
        q = (
            select(Post)
            .options(*_aggregate_options())
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def save(self, post: Post) -> Post:
        """Flush the whole aggregate and stamp ``updated_at``."""
        post.updated_at = utcnow()
        self.db.add(post)
        await self.db.flush()
        return post

    async def delete(self, post: Post) -> None:
        """Remove the post; its comments and likes go with it (delete-orphan)."""
        await self.db.delete(post)
        await self.db.flush()

    async def count(self) -> int:
        return (await self.db.execute(select(func.count()).select_from(Post))).scalar_one()

    async def count_comments(self) -> int:
        return (await self.db.execute(select(func.count()).select_from(Comment))).scalar_one()

    async def count_likes(self) -> int:
        return (await self.db.execute(select(func.count()).select_from(PostLike))).scalar_one()
