from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import AuthTokenInvalid
from app.pagination import resolve_page
from app.security import decode_access_token
from app.services import user_service

_bearer = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Lenient ``?page=&limit=`` parsing for list endpoints.

    Both parameters are taken as raw strings so that a missing or
    non-numeric value falls back to the default instead of failing
    request validation.

    Attributes
    ----------
    page:
        1-based page number.
    limit:
        Page size, defaulting to ``settings.DEFAULT_PAGE_SIZE``.  Large
        values are honoured as given.
    """

    def __init__(
        self,
        page: str | None = Query(None, description="Page number (1-based)."),
        limit: str | None = Query(None, description="Posts per page."),
    ) -> None:
        self.page, self.limit = resolve_page(page, limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> str:
    """
    Resolve the bearer token to the caller's user id.

    Missing, malformed and expired tokens, and tokens for users that no
    longer exist, all surface as 401 through the error normaliser.
    """
    if credentials is None or not credentials.credentials:
        raise AuthTokenInvalid("Not authorized, no token")

    user_id = decode_access_token(credentials.credentials)
    if not await user_service.user_exists(db, user_id):
        raise AuthTokenInvalid()
    return user_id
