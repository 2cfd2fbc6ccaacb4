from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration, read from environment variables or a .env file"""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database - SQLite fallback for local development
    database_url: str = "sqlite:///./expenser.db"

    # JWT verification
    secret_key: str = "your_secret_key"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Settlement engine
    default_currency: str = "USD"
    settlement_tolerance: Decimal = Decimal("0.01")

    # Trips
    invite_code_length: int = 6

    log_level: str = "INFO"


settings = Settings()
