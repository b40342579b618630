"""FastAPI application — main entry point."""

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from accounts.application.services.seed import ensure_admin
from accounts.config import get_settings
from accounts.core.exceptions import register_exception_handlers
from accounts.core.logging import configure_logging
from accounts.core.middleware import setup_middleware
from accounts.core.responses import success
from accounts.domain.models.user import User
from accounts.infrastructure.database import Base, SessionLocal, engine
from accounts.infrastructure.rate_limiter import build_limiter
from accounts.infrastructure.repositories.user_repository import SQLAlchemyUserRepository
from accounts.infrastructure.storage import PUBLIC_PREFIX
from accounts.interfaces.api.users import router as users_router
from accounts.interfaces.deps import get_list_cache, get_password_hasher
from accounts.interfaces.realtime.notifications import router as realtime_router

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)

limiter = build_limiter(settings)


def seed_admin() -> None:
    db = SessionLocal()
    try:
        ensure_admin(SQLAlchemyUserRepository(db, User), get_password_hasher(), settings)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    logger.info("Starting accounts service", env=settings.ENVIRONMENT)

    # Create DB tables (dev only — use migrations in production)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    seed_admin()

    yield

    get_list_cache().close()
    engine.dispose()
    logger.info("Accounts service stopped")


app = FastAPI(
    title="Accounts",
    description="User accounts API — registration, email OTP verification and JWT sessions",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup Middleware (Rate limit, Correlation ID, Logging)
setup_middleware(app, limiter)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(f"/{PUBLIC_PREFIX}", StaticFiles(directory=settings.UPLOAD_DIR), name=PUBLIC_PREFIX)

# Include routers
app.include_router(users_router)
app.include_router(realtime_router)


@app.get("/")
def root():
    return success("success.healthy", {"name": "Accounts", "version": "1.0.0", "docs": "/docs"})


@app.get("/health")
def health():
    return success("success.healthy", {"status": "healthy"})
