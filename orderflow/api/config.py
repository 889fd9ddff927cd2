"""HTTP API configuration using pydantic-settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """API settings loaded from environment variables."""

    # Path to orderflow.config.yaml (falls back to ./orderflow.config.yaml)
    config_path: str | None = None

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8686

    # CORS configuration
    cors_origins: list[str] = ["http://localhost:3000"]

    debug: bool = False

    class Config:
        env_prefix = "ORDERFLOW_API_"
        env_file = ".env"
        env_file_encoding = "utf-8"
