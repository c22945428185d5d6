"""
Application configuration
Values are read from the environment or a local .env file
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Hotel Booking Inventory API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # JWT
    SECRET_KEY: str = "your-secret-key-keep-it-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Booking rules
    CURRENCY: str = "USD"
    MAX_STAY_NIGHTS: int = 30

    # Inventory ledger concurrency
    INVENTORY_MAX_ATTEMPTS: int = 3
    INVENTORY_LOCK_TIMEOUT_SECONDS: float = 2.0
    INVENTORY_RETRY_BACKOFF_SECONDS: float = 0.01

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
