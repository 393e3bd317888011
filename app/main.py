import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.cache import cache
from app.config import settings
from app.error_handlers import install_error_handlers
from app.middleware import RequestMetricsMiddleware
from app.routers import metrics, posts, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the API keeps working without Redis.
    await cache.connect()
    logger.info("Post service started (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Post Service",
    description="Posts with embedded comments and likes, owned by their authors",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestMetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Errors
install_error_handlers(app)

# Routers
app.include_router(posts.router)
app.include_router(users.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
