from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "EMS Backend"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    LOG_LEVEL: str = "INFO"

    MONGODB_URL: str = "mongodb://localhost:27017/ems"
    MONGODB_DB_NAME: Optional[str] = None

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=24 * 60, gt=0)
    JWT_ISSUER: str = "backend"
    JWT_AUDIENCE: str = "client"
    COOKIE_NAME: str = "token"
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # self-registration as admin is disabled while this is unset
    ADMIN_SECRET_CODE: Optional[str] = None

    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_CALLBACK_URL: Optional[str] = None

    CLIENT_URL: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        # loads the .env file from the project root
        env_file=Path(__file__).resolve().parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def token_ttl_seconds(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def google_enabled(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET and self.GOOGLE_CALLBACK_URL)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
