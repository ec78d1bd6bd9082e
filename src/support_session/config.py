from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:9090"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    IDENTITY_PATH: str = "/api/auth/me"
    HISTORY_PATH_TEMPLATE: str = "/api/messages/conversation/admin/{self_id}"
    SUPPORT_MAIL_PATH: str = "/api/email/send-to-support"
    PUBLIC_SUPPORT_MAIL_PATH: str = "/api/email/public/support-request"
    SUPPORT_SESSION_COOKIE: str | None = None
    SESSION_COOKIE_NAME: str = "JSESSIONID"

    REDIS_URL: str = "redis://localhost:6379/0"

    SUPPORT_COUNTERPART_ID: int = 2
    INBOX_CHANNEL_TEMPLATE: str = "support.inbox.{participant_id}"
    COUNTERPART_CHANNEL: str = "support.admin"

    RECONNECT_DELAY_SECONDS: float = 5.0
    RECONNECT_MAX_ATTEMPTS: int | None = None

    HEARTBEAT_SECONDS: float = 4.0
    HEARTBEAT_TIMEOUT_SECONDS: float = 12.0

    HUMAN_SUGGESTION_THRESHOLD: int = 4

    LOG_LEVEL: str = "INFO"

    def inbox_channel(self, participant_id: int) -> str:
        return self.INBOX_CHANNEL_TEMPLATE.format(participant_id=participant_id)

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
