from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./database/feedback.db"
    telegram_bot_token: str = ""
    telegram_api_host: str = "https://api.telegram.org/"
    update_mode: str = "polling"  # polling, webhook
    webhook_url: str = ""
    poll_timeout_seconds: int = 10
    poll_interval_seconds: float = 1.0
    log_level: str = "INFO"
    admin_token: str = ""
    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
