"""
Direct service-layer tests: exercises the Post aggregate rules without
HTTP: typed failures, ownership, toggling, comment ordering, hydration
scopes and cascade deletion.
"""
import uuid

import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Forbidden, MalformedIdentifier, NotFound, ValidationFailed
from app.models import Comment, PostLike
from app.repositories import PostRepository, parse_identifier
from app.schemas import PostCreate, PostUpdate
from app.services import comment_service, post_service, user_service


# ---------------------------------------------------------------------------
# post_service.create_post
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post_via_service(db_session: AsyncSession, make_user):
    author = await make_user("svcauthor")
    post = await post_service.create_post(
        db_session, PostCreate(content=" Direct ", tags=["a", " b "]), author.id
    )
    assert post["content"] == "Direct"
    assert post["tags"] == ["a", "b"]
    assert post["likes_count"] == 0
    assert post["comments_count"] == 0
    assert post["author"] == {"id": author.id, "username": "svcauthor", "avatar": "svcauthor.png"}


@pytest.mark.asyncio
async def test_create_post_validation_error(db_session: AsyncSession, make_user):
    author = await make_user("invalid")
    with pytest.raises(ValidationFailed) as exc_info:
        await post_service.create_post(db_session, PostCreate(content=None), author.id)
    assert [f.field for f in exc_info.value.fields] == ["content"]
    assert await PostRepository(db_session).count() == 0


# ---------------------------------------------------------------------------
# post_service.get_posts / get_post
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_posts_empty(db_session: AsyncSession):
    result = await post_service.get_posts(db_session)
    assert result.total == 0
    assert result.posts == []
    assert result.pages == 0
    assert result.page == 1


@pytest.mark.asyncio
async def test_get_posts_pagination(db_session: AsyncSession, make_user):
    author = await make_user("pager")
    for i in range(7):
        await post_service.create_post(db_session, PostCreate(content=f"post {i}"), author.id)

    result = await post_service.get_posts(db_session, page=3, page_size=3)
    assert result.total == 7
    assert result.pages == 3
    assert len(result.posts) == 1
    assert result.posts[0]["content"] == "post 0"


@pytest.mark.asyncio
async def test_get_posts_garbage_params_use_defaults(db_session: AsyncSession, make_user):
    author = await make_user("garbage")
    for i in range(11):
        await post_service.create_post(db_session, PostCreate(content=f"post {i}"), author.id)

    result = await post_service.get_posts(db_session, page="x", page_size=None)
    assert result.page == 1
    assert len(result.posts) == 10
    assert result.pages == 2


@pytest.mark.asyncio
async def test_get_post_not_found(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await post_service.get_post(db_session, uuid.uuid4().hex)


@pytest.mark.asyncio
async def test_get_post_malformed_id(db_session: AsyncSession):
    with pytest.raises(MalformedIdentifier):
        await post_service.get_post(db_session, "definitely-not-an-id")


@pytest.mark.asyncio
async def test_get_post_accepts_dashed_uuid(db_session: AsyncSession, make_user):
    author = await make_user("dashed")
    created = await post_service.create_post(db_session, PostCreate(content="c"), author.id)
    dashed = str(uuid.UUID(created["id"]))
    detail = await post_service.get_post(db_session, dashed)
    assert detail["id"] == created["id"]


# ---------------------------------------------------------------------------
# post_service.update_post
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_post_via_service(db_session: AsyncSession, make_user):
    author = await make_user("updater")
    created = await post_service.create_post(db_session, PostCreate(content="old", tags=["x"]), author.id)

    updated = await post_service.update_post(
        db_session, created["id"], author.id, PostUpdate(content="new")
    )
    assert updated["content"] == "new"
    assert updated["tags"] == ["x"]


@pytest.mark.asyncio
async def test_update_post_forbidden_leaves_post_untouched(db_session: AsyncSession, make_user):
    owner = await make_user("realowner")
    other = await make_user("notowner")
    created = await post_service.create_post(db_session, PostCreate(content="mine"), owner.id)

    with pytest.raises(Forbidden):
        await post_service.update_post(
            db_session, created["id"], other.id, PostUpdate(content="yours")
        )
    stored = await PostRepository(db_session).find_by_id(created["id"])
    assert stored.content == "mine"


@pytest.mark.asyncio
async def test_update_post_too_long_content(db_session: AsyncSession, make_user):
    author = await make_user("toolong")
    created = await post_service.create_post(db_session, PostCreate(content="ok"), author.id)
    with pytest.raises(ValidationFailed):
        await post_service.update_post(
            db_session, created["id"], author.id, PostUpdate(content="z" * 2001)
        )


@pytest.mark.asyncio
async def test_update_missing_post(db_session: AsyncSession, make_user):
    author = await make_user("nobody")
    with pytest.raises(NotFound):
        await post_service.update_post(db_session, uuid.uuid4().hex, author.id, PostUpdate(content="x"))


# ---------------------------------------------------------------------------
# post_service.delete_post
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_post_cascades_to_comments_and_likes(db_session: AsyncSession, make_user):
    author = await make_user("cascade")
    fan = await make_user("cascadefan")
    created = await post_service.create_post(db_session, PostCreate(content="doomed"), author.id)
    await comment_service.add_comment(db_session, created["id"], fan.id, "first")
    await post_service.toggle_like(db_session, created["id"], fan.id)

    await post_service.delete_post(db_session, created["id"], author.id)

    with pytest.raises(NotFound):
        await post_service.get_post(db_session, created["id"])
    comments = (await db_session.execute(select(func.count()).select_from(Comment))).scalar_one()
    likes = (await db_session.execute(select(func.count()).select_from(PostLike))).scalar_one()
    assert comments == 0
    assert likes == 0


@pytest.mark.asyncio
async def test_delete_post_forbidden(db_session: AsyncSession, make_user):
    owner = await make_user("delowner")
    other = await make_user("delother")
    created = await post_service.create_post(db_session, PostCreate(content="safe"), owner.id)
    with pytest.raises(Forbidden):
        await post_service.delete_post(db_session, created["id"], other.id)
    assert await PostRepository(db_session).count() == 1


# ---------------------------------------------------------------------------
# post_service.toggle_like
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_toggle_like_twice_restores_state(db_session: AsyncSession, make_user):
    author = await make_user("likeauthor")
    first = await make_user("likefirst")
    second = await make_user("likesecond")
    created = await post_service.create_post(db_session, PostCreate(content="likeable"), author.id)

    await post_service.toggle_like(db_session, created["id"], first.id)
    before = await post_service.toggle_like(db_session, created["id"], second.id)
    assert [u["id"] for u in before["likes"]] == [first.id, second.id]

    await post_service.toggle_like(db_session, created["id"], second.id)
    after = await post_service.toggle_like(db_session, created["id"], second.id)
    assert [u["id"] for u in after["likes"]] == [first.id, second.id]
    assert after["likes_count"] == 2


@pytest.mark.asyncio
async def test_toggle_like_refreshes_updated_at(db_session: AsyncSession, make_user):
    author = await make_user("stamp")
    created = await post_service.create_post(db_session, PostCreate(content="t"), author.id)
    liked = await post_service.toggle_like(db_session, created["id"], author.id)
    assert liked["updated_at"] >= created["updated_at"]
    assert liked["created_at"] == created["created_at"]


@pytest.mark.asyncio
async def test_toggle_like_missing_post(db_session: AsyncSession, make_user):
    user = await make_user("likeghost")
    with pytest.raises(NotFound):
        await post_service.toggle_like(db_session, uuid.uuid4().hex, user.id)


@pytest.mark.asyncio
async def test_toggle_like_concurrent_first_like_resolves_to_liked(db_session: AsyncSession, make_user):
    author = await make_user("raceauthor")
    fan = await make_user("racefan")
    created = await post_service.create_post(db_session, PostCreate(content="contested"), author.id)
    # Same like written by another request after this session loaded the post.
    await db_session.execute(insert(PostLike).values(post_id=created["id"], user_id=fan.id))

    liked = await post_service.toggle_like(db_session, created["id"], fan.id)
    assert [u["id"] for u in liked["likes"]] == [fan.id]
    assert liked["likes_count"] == 1
    likes = (await db_session.execute(select(func.count()).select_from(PostLike))).scalar_one()
    assert likes == 1


@pytest.mark.asyncio
async def test_update_post_blank_tags_keep_previous(db_session: AsyncSession, make_user):
    author = await make_user("blanktagger")
    created = await post_service.create_post(db_session, PostCreate(content="t", tags=["keep"]), author.id)
    updated = await post_service.update_post(
        db_session, created["id"], author.id, PostUpdate(tags=["  "])
    )
    assert updated["tags"] == ["keep"]


# ---------------------------------------------------------------------------
# comment_service.add_comment
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_comment_via_service(db_session: AsyncSession, make_user):
    author = await make_user("cauthor")
    reader = await make_user("creader")
    created = await post_service.create_post(db_session, PostCreate(content="discuss"), author.id)

    await comment_service.add_comment(db_session, created["id"], reader.id, "hi")
    post = await comment_service.add_comment(db_session, created["id"], reader.id, "hi")

    assert [c["text"] for c in post["comments"]] == ["hi", "hi"]
    assert post["comments_count"] == 2
    assert post["comments"][0]["author"]["username"] == "creader"


@pytest.mark.asyncio
async def test_add_comment_validates_before_lookup(db_session: AsyncSession, make_user):
    user = await make_user("early")
    with pytest.raises(ValidationFailed):
        await comment_service.add_comment(db_session, uuid.uuid4().hex, user.id, "   ")


@pytest.mark.asyncio
async def test_add_comment_missing_post(db_session: AsyncSession, make_user):
    user = await make_user("orphan")
    with pytest.raises(NotFound):
        await comment_service.add_comment(db_session, uuid.uuid4().hex, user.id, "hello?")


# ---------------------------------------------------------------------------
# Hydration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_profiles_skips_unknown_ids(db_session: AsyncSession, make_user):
    user = await make_user("known")
    profiles = await user_service.get_profiles(db_session, [user.id, "f" * 32, None])
    assert profiles == {user.id: {"id": user.id, "username": "known", "avatar": "known.png"}}


@pytest.mark.asyncio
async def test_dangling_author_renders_as_none(db_session: AsyncSession, make_user):
    author = await make_user("vanishing")
    created = await post_service.create_post(db_session, PostCreate(content="left behind"), author.id)
    await db_session.delete(author)
    await db_session.flush()

    detail = await post_service.get_post(db_session, created["id"])
    assert detail["author"] is None


def test_parse_identifier():
    value = uuid.uuid4()
    assert parse_identifier(str(value)) == value.hex
    assert parse_identifier(value.hex.upper()) == value.hex
    with pytest.raises(MalformedIdentifier):
        parse_identifier("1234")
    with pytest.raises(MalformedIdentifier):
        parse_identifier(None)
