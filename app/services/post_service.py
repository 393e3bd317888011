"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Every mutation follows load -> mutate in memory -> ``repo.save`` so the
  post, its comments and its likes are flushed as one unit inside the
  request transaction.  Concurrent writers are last-write-wins.
- Ownership is checked here: only the author may edit or delete a post,
  anyone authenticated may like or comment.
- Identity references are hydrated after the fetch with one batched
  ``user_service.get_profiles`` call.  Which references get hydrated
  depends on the operation (see ``HYDRATE_*``); the others are rendered
  as the raw user id.
- Failures are raised as ``app.errors`` types and never formatted here.
- List and detail reads go through the Redis cache-aside layer; every
  mutation invalidates the list pages and the post's detail entry.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.config import settings
from app.errors import Forbidden, NotFound, ValidationFailed
from app.models import Post, PostLike
from app.pagination import page_count, resolve_page
from app.repositories import PostRepository, parse_identifier
from app.schemas import PaginatedPosts, PostCreate, PostUpdate
from app.services import user_service
from app.validation import check_post_content, clean_tags

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Hydration scopes
# ---------------------------------------------------------------------------

HYDRATE_AUTHOR = "author"
HYDRATE_COMMENTS = "comments"
HYDRATE_LIKES = "likes"
HYDRATE_ALL = frozenset({HYDRATE_AUTHOR, HYDRATE_COMMENTS, HYDRATE_LIKES})


def _identity_refs(posts: list[Post], scope: frozenset[str]) -> set[str]:
    refs: set[str] = set()
    for post in posts:
        if HYDRATE_AUTHOR in scope:
            refs.add(post.author_id)
        if HYDRATE_COMMENTS in scope:
            refs.update(c.author_id for c in post.comments)
        if HYDRATE_LIKES in scope:
            refs.update(post.liker_ids)
    return refs


async def hydrate(db: AsyncSession, posts: list[Post], scope: frozenset[str]) -> list[dict]:
    """Serialise *posts* with the identity references in *scope* resolved."""
    profiles = await user_service.get_profiles(db, _identity_refs(posts, scope))
    return [post_to_dict(post, profiles, scope) for post in posts]


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def post_to_dict(post: Post, profiles: dict[str, dict], scope: frozenset[str]) -> dict:
    """
    Serialise a loaded Post aggregate.

    A hydrated reference whose user is gone renders as ``None`` (author,
    comment author) or is left out (likers).  Counts are always derived
    from the live collections.
    """
    if HYDRATE_AUTHOR in scope:
        author = profiles.get(post.author_id)
    else:
        author = post.author_id

    if HYDRATE_LIKES in scope:
        likes = [profiles[uid] for uid in post.liker_ids if uid in profiles]
    else:
        likes = post.liker_ids

    comments = []
    for comment in post.comments:
        if HYDRATE_COMMENTS in scope:
            comment_author = profiles.get(comment.author_id)
        else:
            comment_author = comment.author_id
        comments.append({
            "text": comment.text,
            "author": comment_author,
            "created_at": _isoformat(comment.created_at),
        })

    return {
        "id": post.id,
        "content": post.content,
        "image": post.image,
        "author": author,
        "tags": list(post.tags or []),
        "likes": likes,
        "comments": comments,
        "likes_count": post.likes_count,
        "comments_count": post.comments_count,
        "created_at": _isoformat(post.created_at),
        "updated_at": _isoformat(post.updated_at),
    }


# ---------------------------------------------------------------------------
# Aggregate helpers (shared with comment_service)
# ---------------------------------------------------------------------------

async def load_post(repo: PostRepository, post_id: str) -> Post:
    """Fetch the aggregate or raise NotFound / MalformedIdentifier."""
    post = await repo.find_by_id(parse_identifier(post_id))
    if post is None:
        raise NotFound()
    return post


def _ensure_author(post: Post, caller_id: str) -> None:
    if post.author_id != caller_id:
        raise Forbidden()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, data: PostCreate, author_id: str) -> dict:
    """Create a post owned by *author_id*; returns it with the author hydrated."""
    errors = check_post_content(data.content)
    if errors:
        raise ValidationFailed(errors)

    post = Post(
        content=data.content.strip(),
        tags=clean_tags(data.tags),
        image=data.image or "",
        author_id=author_id,
        comments=[],
        likes=[],
    )
    repo = PostRepository(db)
    await repo.create(post)
    logger.info("Created post id=%s author=%s", post.id, author_id)

    await cache.invalidate_post(session=db)
    return (await hydrate(db, [post], frozenset({HYDRATE_AUTHOR})))[0]


async def get_posts(db: AsyncSession, page=None, page_size=None) -> PaginatedPosts:
    """
    Return one page of posts, newest first.

    *page* and *page_size* may be missing or garbage; they silently fall
    back to 1 and ``settings.DEFAULT_PAGE_SIZE``.
    """
    page, page_size = resolve_page(page, page_size)

    cache_key = f"posts:list:{page}:{page_size}"
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedPosts(**cached)

    repo = PostRepository(db)
    total = await repo.count()
    posts = await repo.find_paginated((page - 1) * page_size, page_size)

    response = PaginatedPosts(
        posts=await hydrate(db, posts, frozenset({HYDRATE_AUTHOR, HYDRATE_COMMENTS})),
        page=page,
        pages=page_count(total, page_size),
        total=total,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_post(db: AsyncSession, post_id: str) -> dict:
    """Return a fully hydrated post (author, comment authors, likers)."""
    post_id = parse_identifier(post_id)
    cache_key = f"posts:detail:{post_id}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    post = await load_post(PostRepository(db), post_id)
    data = (await hydrate(db, [post], HYDRATE_ALL))[0]
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def update_post(db: AsyncSession, post_id: str, caller_id: str, data: PostUpdate) -> dict:
    """
    Apply *data* to a post owned by *caller_id*.

    Each field is replaced only when the new value is truthy, so an empty
    string or empty list keeps the previous value.  Tags are judged after
    blank entries are dropped.
    """
    repo = PostRepository(db)
    post = await load_post(repo, post_id)
    _ensure_author(post, caller_id)

    if data.content:
        errors = check_post_content(data.content)
        if errors:
            raise ValidationFailed(errors)
        post.content = data.content.strip()
    tags = clean_tags(data.tags)
    if tags:
        post.tags = tags
    if data.image:
        post.image = data.image

    await repo.save(post)
    logger.info("Updated post id=%s", post.id)

    await cache.invalidate_post(post.id, session=db)
    return (await hydrate(db, [post], frozenset({HYDRATE_AUTHOR})))[0]


async def delete_post(db: AsyncSession, post_id: str, caller_id: str) -> None:
    """Delete a post owned by *caller_id* together with its comments and likes."""
    repo = PostRepository(db)
    post = await load_post(repo, post_id)
    _ensure_author(post, caller_id)

    await repo.delete(post)
    logger.info("Deleted post id=%s", post.id)
    await cache.invalidate_post(post.id, session=db)


async def toggle_like(db: AsyncSession, post_id: str, caller_id: str) -> dict:
    """
    Like the post if *caller_id* has not liked it yet, unlike it otherwise.

    Calling this twice with the same caller restores the original state.
    When a concurrent request records the same like first, the post is
    reloaded and returned as liked.
    """
    repo = PostRepository(db)
    post = await load_post(repo, post_id)
    post_pk = post.id

    existing = next((like for like in post.likes if like.user_id == caller_id), None)
    if existing is not None:
        post.likes.remove(existing)
        await repo.save(post)
    else:
        try:
            async with db.begin_nested():
                post.likes.append(PostLike(user_id=caller_id))
                await repo.save(post)
        except IntegrityError:
            logger.info("Like on post id=%s by user=%s already recorded", post_pk, caller_id)
            post = await repo.find_by_id(post_pk, refresh=True)
            if post is None:
                raise NotFound()

    logger.info(
        "%s post id=%s by user=%s", "Unliked" if existing else "Liked", post_pk, caller_id
    )

    await cache.invalidate_post(post_pk, session=db)
    return (await hydrate(db, [post], frozenset({HYDRATE_AUTHOR, HYDRATE_LIKES})))[0]
