from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import PaginationParams, get_current_user_id
from app.schemas import CommentCreate, MessageResponse, PaginatedPosts, PostCreate, PostUpdate
from app.services import comment_service, post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])

@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.create_post(db, data, user_id)

@router.get("", response_model=PaginatedPosts)
async def list_posts(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_posts(db, pagination.page, pagination.limit)

@router.get("/{post_id}")
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    return await post_service.get_post(db, post_id)

@router.put("/{post_id}")
async def update_post(
    post_id: str,
    data: PostUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.update_post(db, post_id, user_id, data)

@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, post_id, user_id)
    return {"message": "Post removed"}

@router.put("/{post_id}/like")
async def toggle_like(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.toggle_like(db, post_id, user_id)

@router.post("/{post_id}/comments", status_code=201)
async def add_comment(
    post_id: str,
    data: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, post_id, user_id, data.text)
