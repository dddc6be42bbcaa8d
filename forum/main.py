import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from forum.config import settings
from forum.database import Base, engine
from forum.exceptions import register_exception_handlers
from forum.middleware import RequestLogMiddleware
from forum.notifications import notifier
from forum.routers import comments, posts, users

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.APP_ENV == "development":
        # Migrations own the schema elsewhere; locally just create what is missing.
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    await notifier.connect()
    logger.info("Forum API started (%s)", settings.APP_ENV)
    yield
    # Shutdown
    await notifier.disconnect()
    await engine.dispose()

app = FastAPI(
    title="Forum API",
    description="Posts, comments and likes with token auth and role-gated deletion",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(users.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0", "notifications": notifier.stats}
