# app/core/config.py
from pathlib import Path
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Service Marketplace Bookings API"

    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'bookings.db'}"

    # JWT
    SECRET_KEY: str = "change_me_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Payment gateway secret used to check callback signatures
    RAZORPAY_KEY_SECRET: str = ""
    CURRENCY: str = "INR"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


settings = Settings()
