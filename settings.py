from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment or a local .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Kora Service API"

    # Database
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "kora"

    # Tokens
    access_token_secret: str = "change-me-access"
    verify_account_secret: str = "change-me-verify"
    access_token_expire_hours: int = 3
    verify_token_expire_minutes: int = 2
    otp_expire_minutes: int = 2
    cookie_max_age_seconds: int = 24 * 60 * 60

    # Media host
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "Kora Service"

    # Notification service
    novu_api_key: str = ""
    novu_api_url: str = "https://api.novu.co/v1"

    # Links embedded in notifications
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:5500"

    allowed_origins: List[str] = [
        "http://localhost:5500",
        "http://127.0.0.1:3000",
        "http://localhost:3000",
        "http://localhost:5174",
        "https://kora-service.onrender.com",
        "https://kora-kappa.vercel.app",
        "https://kora-rentals.vercel.app",
    ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
