from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:3001/api/v1"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    SOCKET_URL: str = "http://localhost:3001"
    SOCKET_PATH: str = "socket.io"

    STORAGE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    STORAGE_KEY_PREFIX: str = "autocare_messages"
    KNOWN_USERS_KEY: str = "autocare_message_users"

    FANOUT_CONCURRENCY: int = 20
    NEWEST_FIRST_PAGES: bool = True
    RETRY_PENDING_ON_LOAD: bool = True

    NOTIFICATION_LIMIT: int = 50

    SESSION_USER_ID: str = ""
    SESSION_NAME: str = ""
    SESSION_EMAIL: str = ""
    SESSION_IS_ADMIN: bool = False
    SESSION_TOKEN: str | None = None

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
