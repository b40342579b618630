"""
API Dependencies.
"""

from functools import lru_cache
from typing import Callable

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from accounts.application.services.account_service import AccountService
from accounts.application.services.auth_guard import AuthGuard
from accounts.application.services.security import OtpGenerator, PasswordHasher, TokenIssuer
from accounts.config import get_settings
from accounts.domain.models.user import User
from accounts.domain.repositories.user_repository import UserRepository
from accounts.infrastructure.cache import ListCache, build_list_cache
from accounts.infrastructure.database import SessionLocal, get_db
from accounts.infrastructure.mailer import Mailer, SMTPMailer
from accounts.infrastructure.repositories.user_repository import SQLAlchemyUserRepository
from accounts.infrastructure.storage import LocalImageStorage


def get_session_factory() -> Callable[[], Session]:
    """Session factory for code that lives outside a request, such as WebSocket handshakes."""
    return SessionLocal


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    """Get user repository instance."""
    return SQLAlchemyUserRepository(db, User)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    settings = get_settings()
    return TokenIssuer(settings.JWT_SECRET_KEY, settings.JWT_ALGORITHM, settings.JWT_EXPIRATION_MINUTES)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(get_settings().BCRYPT_ROUNDS)


@lru_cache
def get_otp_generator() -> OtpGenerator:
    return OtpGenerator(get_settings().OTP_LENGTH)


@lru_cache
def get_mailer() -> Mailer:
    settings = get_settings()
    return SMTPMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        from_email=settings.MAIL_FROM,
        starttls=settings.SMTP_STARTTLS,
    )


@lru_cache
def get_list_cache() -> ListCache:
    settings = get_settings()
    return build_list_cache(settings.REDIS_URL, settings.CACHE_TTL_SECONDS)


@lru_cache
def get_storage() -> LocalImageStorage:
    settings = get_settings()
    return LocalImageStorage(settings.UPLOAD_DIR, settings.allowed_image_extensions, settings.MAX_UPLOAD_BYTES)


def get_auth_guard(
    repo: UserRepository = Depends(get_user_repository),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthGuard:
    return AuthGuard(repo, tokens, get_settings().SUPPORT_EMAIL)


def get_account_service(
    background_tasks: BackgroundTasks,
    repo: UserRepository = Depends(get_user_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    otp_generator: OtpGenerator = Depends(get_otp_generator),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: Mailer = Depends(get_mailer),
    cache: ListCache = Depends(get_list_cache),
) -> AccountService:
    """Account service whose mail and cache side effects run after the response."""
    settings = get_settings()
    return AccountService(
        repo=repo,
        hasher=hasher,
        otp_generator=otp_generator,
        tokens=tokens,
        mailer=mailer,
        cache=cache,
        dispatch=background_tasks.add_task,
        reveal_otp=settings.ENVIRONMENT == "development",
        cache_ttl=settings.CACHE_TTL_SECONDS,
    )
