"""
Database Configuration
======================

PostgreSQL connection configuration for the API process, built from the
application Settings (POSTGRES_* environment variables).
"""
from dataclasses import dataclass
from typing import Optional

import asyncpg

from .settings import Settings, get_settings


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_settings(cls, settings: Settings, min_size: int = 2, max_size: int = 10) -> 'PostgresConfig':
        return cls(
            host=settings.postgres_host,
            port=settings.postgres_port,
            user=settings.postgres_user,
            password=settings.postgres_password,
            database=settings.postgres_db,
            min_size=min_size,
            max_size=max_size,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'min_size': self.min_size,
            'max_size': self.max_size,
        }


def get_postgres_config(settings: Optional[Settings] = None, min_size: int = 2, max_size: int = 10) -> PostgresConfig:
    return PostgresConfig.from_settings(settings or get_settings(), min_size=min_size, max_size=max_size)


async def create_postgres_pool(settings: Optional[Settings] = None, min_size: int = 2, max_size: int = 10) -> asyncpg.Pool:
    """Create PostgreSQL connection pool from settings."""
    config = get_postgres_config(settings, min_size=min_size, max_size=max_size)
    return await asyncpg.create_pool(**config.to_asyncpg_kwargs())
