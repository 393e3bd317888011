from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.schemas import UserCreate, UserDetail, UserResponse
from app.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.post("", status_code=201, response_model=UserResponse)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    # Duplicate username/email surfaces as IntegrityError -> 400 via the normaliser.
    return await user_service.create_user(db, data)

@router.get("/{user_id}", response_model=UserDetail)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    return await user_service.get_user(db, user_id)
