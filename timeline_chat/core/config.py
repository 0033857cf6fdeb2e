import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global configuration for environment variables."""

    APP_NAME: str = "Timeline Studio Chat"
    ENV: str = os.getenv("ENV", "development")

    # Debug / logging
    DEBUG: bool = os.getenv("DEBUG", "False").lower() in ("1", "true")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    DEEPSEEK_API_KEY: str | None = os.getenv("DEEPSEEK_API_KEY")
    DEEPSEEK_BASE_URL: str | None = os.getenv("DEEPSEEK_BASE_URL")
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Generation defaults
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "claude-4-sonnet")
    DEFAULT_TEMPERATURE: float = float(os.getenv("DEFAULT_TEMPERATURE", "0.7"))
    DEFAULT_MAX_TOKENS: int = int(os.getenv("DEFAULT_MAX_TOKENS", "1000"))

    # Upper bound for a single streamed response
    REQUEST_TIMEOUT_MS: int = int(os.getenv("REQUEST_TIMEOUT_MS", "120000"))

    # Session storage
    CHAT_STORAGE_DIR: str = os.getenv("CHAT_STORAGE_DIR", os.path.join(os.path.expanduser("~"), ".timeline-studio", "chats"))

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")


settings = Settings()
