from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from typing import Optional
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file (for secrets like the Blink API key)
    - System environment

    Variable names match docker-compose conventions:
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for database)
    - BLINK_API_URL, BLINK_API_KEY, BLINK_WALLET_ID (for payouts)
    """

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # JWT - uses SECRET_KEY from .env or generates default
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # PostgreSQL (from docker-compose)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "cbaf_user"
    postgres_password: str = "cbaf_pass"
    postgres_db: str = "cbaf"
    database_url: Optional[str] = None

    # Blink Lightning wallet (from .env)
    blink_api_url: str = "https://api.blink.sv/graphql"
    blink_api_key: str = ""
    blink_wallet_id: str = ""

    # Payouts
    payment_timeout_seconds: float = 15.0
    address_check_timeout_seconds: float = 10.0
    payment_delay_seconds: float = 0.2

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('jwt_secret_key', mode='before')
    @classmethod
    def get_jwt_secret(cls, v):
        """Use SECRET_KEY from env if JWT_SECRET_KEY not set"""
        if v and v != "dev-secret-key-change-in-production":
            return v
        # Fall back to SECRET_KEY (used in .env)
        return os.getenv('SECRET_KEY', v or 'dev-secret-key-change-in-production')

    @field_validator('database_url', mode='before')
    @classmethod
    def construct_database_url(cls, v, info):
        """Construct database URL from components if not explicitly set"""
        if v:
            return v

        data = info.data
        host = data.get('postgres_host', 'localhost')
        port = data.get('postgres_port', 5432)
        user = data.get('postgres_user', 'cbaf_user')
        password = data.get('postgres_password', 'cbaf_pass')
        db = data.get('postgres_db', 'cbaf')

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @property
    def blink_configured(self) -> bool:
        return bool(self.blink_api_key and self.blink_wallet_id)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
