import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

from .url_parser import parser

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "SafeRental Agreement Verification"
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./saferental.db"
    )
    SQL_ECHO: bool = False

    FILE_SIGNING_SECRET: str | None = os.getenv("FILE_SIGNING_SECRET")
    SIGNED_URL_TTL_SECONDS: int = 60 * 60
    OTP_TTL_MINUTES: int = 10

    UPLOAD_DIR: Path = Path(os.getenv("UPLOAD_DIR", "uploads"))
    AGREEMENTS_DIR: Path = Path(os.getenv("AGREEMENTS_DIR", "media/agreements"))
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    ALLOWED_UPLOAD_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".pdf")

    PARTY_EMAIL_CASE_SENSITIVE: bool = True
    DEFAULT_PHONE_REGION: str | None = os.getenv("DEFAULT_PHONE_REGION")

    EMAIL_USER: str | None = os.getenv("EMAIL_USER")
    EMAIL_PASSWORD: str | None = os.getenv("EMAIL_PASSWORD")
    EMAIL_SERVER: str | None = os.getenv("EMAIL_SERVER")
    EMAIL_PORT: int = 587
    EMAIL_USE_TLS: bool = True
    FROM_EMAIL: str = os.getenv("FROM_EMAIL", "noreply@saferental.com")

    DELIVERY_CLAIM_TIMEOUT_SECONDS: int = 15 * 60
    RETRY_FAILED_DELIVERIES_ON_STARTUP: bool = True
    PURGE_EXPIRED_OTPS_ON_STARTUP: bool = True
    CREATE_TABLES_ON_STARTUP: bool = False

    ALLOWED_HOSTS_RAW: str = os.getenv("ALLOWED_HOSTS", "")

    @property
    def ALLOWED_HOSTS(self) -> List[str]:
        return parser.parse_url_list(self.ALLOWED_HOSTS_RAW, "ALLOWED_HOSTS")

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


settings = Settings()
