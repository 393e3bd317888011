from pydantic import BaseModel, Field


# --- User ---

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    avatar: str | None = Field(None, max_length=500)


class UserProfile(BaseModel):
    id: str
    username: str
    avatar: str = ""


class UserResponse(UserProfile):
    email: str
    created_at: str | None = None


class UserDetail(UserResponse):
    posts_count: int = 0


# --- Comment ---
#
# Length rules for content/text live in app.validation so that the service
# layer enforces them no matter who calls it; the request schemas only
# describe shape.

class CommentCreate(BaseModel):
    text: str | None = None


# --- Post ---

class PostCreate(BaseModel):
    content: str | None = None
    tags: list[str] = []
    image: str | None = Field(None, max_length=500)


class PostUpdate(BaseModel):
    content: str | None = None
    tags: list[str] | None = None
    image: str | None = Field(None, max_length=500)


# --- Pagination ---

class PaginatedPosts(BaseModel):
    posts: list  # hydrated post dicts
    page: int
    pages: int
    total: int


# --- Misc ---

class MessageResponse(BaseModel):
    message: str


class MetricsResponse(BaseModel):
    total_posts: int
    total_comments: int
    total_likes: int
    total_users: int
    avg_comments_per_post: float
    cache_info: dict = {}
