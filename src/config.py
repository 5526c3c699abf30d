"""
Configuration management for the Persona Chat Safety API
"""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = Field(default="Persona Chat Safety API", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Database (SQLite)
    database_path: str = Field(default=str(PROJECT_ROOT / "data" / "persona_chat.db"), alias="DATABASE_PATH")
    database_pool_size: int = Field(default=5, alias="DATABASE_POOL_SIZE")
    database_pool_timeout: float = Field(default=30.0, alias="DATABASE_POOL_TIMEOUT")
    auto_migrate: bool = Field(default=True, alias="AUTO_MIGRATE")
    migrations_dir: str = Field(default=str(PROJECT_ROOT / "migrations" / "sqlite"), alias="MIGRATIONS_DIR")

    # Language model (OpenAI-compatible chat completions)
    llm_api_key: str = Field(default="", alias="LLM_API_KEY")
    llm_base_url: str = Field(default="https://api.openai.com/v1", alias="LLM_BASE_URL")
    llm_model: str = Field(default="gpt-4o", alias="LLM_MODEL")
    llm_max_tokens: int = Field(default=500, alias="LLM_MAX_TOKENS")
    llm_temperature: float = Field(default=0.8, alias="LLM_TEMPERATURE")
    llm_timeout_seconds: float = Field(default=20.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_attempts: int = Field(default=2, alias="LLM_MAX_ATTEMPTS")

    # Moderation pipeline
    moderation_min_length: int = Field(default=3, alias="MODERATION_MIN_LENGTH")
    recent_message_limit: int = Field(default=10, alias="RECENT_MESSAGE_LIMIT")
    summary_min_messages: int = Field(default=3, alias="SUMMARY_MIN_MESSAGES")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list"""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
