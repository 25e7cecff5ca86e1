from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment or .env."""

    database_url: str = "sqlite:///./chat.db"
    environment: str = "development"
    allowed_origins: Optional[str] = None
    log_level: str = "INFO"

    # chat behaviour
    history_limit: int = 100
    system_user: str = "系統"
    invite_code_length: int = 6
    max_identity_attempts: int = 5
    # When enabled, sendMessage ignores the client-supplied sender name
    bind_sender_to_session: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def cors_origins(self) -> List[str]:
        if not self.allowed_origins:
            return ["*"]
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


settings = Settings()
