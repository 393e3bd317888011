from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.models import User
from app.repositories import PostRepository
from app.schemas import MetricsResponse
from app.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):
    repo = PostRepository(db)
    total_posts = await repo.count()
    total_comments = await repo.count_comments()
    total_likes = await repo.count_likes()
    total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    avg_comments = total_comments / total_posts if total_posts > 0 else 0

    return MetricsResponse(
        total_posts=total_posts,
        total_comments=total_comments,
        total_likes=total_likes,
        total_users=total_users,
        avg_comments_per_post=round(avg_comments, 2),
        cache_info=cache.stats,
    )
