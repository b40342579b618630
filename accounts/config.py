"""Accounts service — configuration via pydantic-settings."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./accounts.db"

    # Security
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 60 * 24 * 30
    BCRYPT_ROUNDS: int = 10
    OTP_LENGTH: int = 6

    # API
    API_VERSION: str = "v1"
    SUPPORT_EMAIL: str = "support@example.com"
    CORS_ORIGINS: str = "*"

    # Redis (list cache + rate limiter); empty disables both
    REDIS_URL: str = ""
    CACHE_TTL_SECONDS: int = 3600
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 1

    # Mail
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_STARTTLS: bool = True
    MAIL_FROM: str = "no-reply@example.com"

    # Upload dirs
    UPLOAD_DIR: str = "./data/uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_EXTENSIONS: str = "jpg,jpeg,png,heic"

    # Seeded admin
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "Admin@123"
    ADMIN_FIRST_NAME: str = "Super"
    ADMIN_LAST_NAME: str = "Admin"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def allowed_image_extensions(self) -> set[str]:
        return {ext.strip().lower() for ext in self.ALLOWED_IMAGE_EXTENSIONS.split(",") if ext.strip()}


@lru_cache
def get_settings() -> Settings:
    return Settings()
