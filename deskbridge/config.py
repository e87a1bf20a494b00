from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    debug: bool = False
    log_level: str = "INFO"

    admin_token: str = ""
    public_base_url: str = "http://localhost:8000"

    # Durable storage for the Chatwoot integration config: "file" or "database"
    config_backend: str = "file"
    config_file: str = "chatwoot.json"
    database_url: str = "sqlite:///./deskbridge.db"

    # Environment defaults, used only when nothing is persisted yet
    chatwoot_url: str = ""
    chatwoot_token: str = ""
    chatwoot_account_id: str = ""
    chatwoot_inbox_id: str = ""

    chat_gateway_url: str = "http://localhost:8080"
    chat_session_tokens: str = ""
    chat_gateway_timeout_seconds: float = 30.0
    default_chat_domain: str = "s.whatsapp.net"
    min_phone_digits: int = 8
    max_event_age_seconds: int = 120

    media_fetch_timeout_seconds: float = 30.0
    media_max_bytes: int = 64 * 1024 * 1024

    dedup_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    dedup_ttl_seconds: int = 86400
    dedup_socket_timeout_seconds: float = 0.3

    class Config:
        env_file = ".env"
        extra = "ignore"

    def session_tokens(self) -> list[str]:
        return [token.strip() for token in self.chat_session_tokens.split(",") if token.strip()]


settings = Settings()
