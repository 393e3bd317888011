"""
Comment service: append-only comments on the Post aggregate.

Comments cannot be edited or deleted on their own; they live and die with
their post.  New comments are prepended so the list stays newest-first,
and the whole updated post is returned rather than the single comment.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.errors import ValidationFailed
from app.models import Comment, utcnow
from app.repositories import PostRepository
from app.services.post_service import HYDRATE_COMMENTS, hydrate, load_post
from app.validation import check_comment_text

logger = logging.getLogger(__name__)


async def add_comment(db: AsyncSession, post_id: str, caller_id: str, text: str | None) -> dict:
    """Prepend a comment by *caller_id* and return the post with comment authors hydrated."""
    errors = check_comment_text(text)
    if errors:
        raise ValidationFailed(errors)

    repo = PostRepository(db)
    post = await load_post(repo, post_id)

    post.comments.insert(0, Comment(text=text.strip(), author_id=caller_id, created_at=utcnow()))
    await repo.save(post)
    logger.info("Added comment to post id=%s by user=%s", post.id, caller_id)

    await cache.invalidate_post(post.id, session=db)
    return (await hydrate(db, [post], frozenset({HYDRATE_COMMENTS})))[0]
