"""Application settings loaded from environment variables using pydantic-settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Casegraph application configuration.

    All settings can be overridden via environment variables.
    """

    DATABASE_DIR: str = "./data"
    FRONTEND_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Graph construction
    DEFAULT_NODE_CONFIDENCE: int = 50
    DEAD_PATH_STRENGTH_THRESHOLD: float = 0.5

    # Initial view preferences handed to the selection controller
    DEFAULT_VIEW: str = "flow"
    SHOW_DEAD_PATHS: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
