# rumlab/core/config.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Loads environment variables from .env file."""
    DATABASE_URL: str = "sqlite:///./rumlab.db"

    # Synthetic analysis
    DEVICE_PROFILE: str = "constrained-mobile"
    NAVIGATION_TIMEOUT_MS: int = 60_000
    SIMULATION_BUDGET_MS: int = 5_000
    MAX_CONCURRENT_ANALYSES: int = 2  # 0 disables the limit

    # Live RUM feed
    SSE_QUEUE_SIZE: int = 100
    SSE_KEEPALIVE_SECONDS: float = 15.0

    # Serving
    CORS_ORIGINS: List[str] = ["*"]
    FRONTEND_DIR: Optional[str] = None
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

# Create a single instance of the settings to be used across the application
settings = Settings()
