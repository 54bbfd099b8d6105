"""
Settings Repository - super admin key/value settings

Storage: PostgreSQL (super_admin_settings table)

The funding configuration is stored as loose key/value rows; it is read
once per request and turned into an immutable FundingConfig.
"""
import logging
from typing import Any, Dict

import asyncpg

from models.domain.funding import FundingConfig
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

FUNDING_SETTING_KEYS = {
    'funding_base_amount': 'base_amount',
    'funding_rank_bonus_enabled': 'rank_bonus_enabled',
    'funding_rank_bonus_pool': 'rank_bonus_pool',
    'funding_performance_bonus_enabled': 'performance_bonus_enabled',
    'funding_performance_bonus_pool': 'performance_bonus_pool',
}

_TRUE = {'true', '1', 'yes', 'on'}
_FALSE = {'false', '0', 'no', 'off'}


def parse_funding_config(values: Dict[str, str]) -> FundingConfig:
    """
    Build a FundingConfig from raw setting rows; absent keys keep defaults.

    Raises:
        ConfigurationError: If a value cannot be parsed or is negative
    """
    kwargs = {}
    for key, field_name in FUNDING_SETTING_KEYS.items():
        raw = values.get(key)
        if raw is None:
            continue
        text = str(raw).strip().lower()

        if field_name.endswith('_enabled'):
            if text in _TRUE:
                kwargs[field_name] = True
            elif text in _FALSE:
                kwargs[field_name] = False
            else:
                raise ConfigurationError(f"Setting {key} must be true or false, got {raw!r}")
            continue

        try:
            kwargs[field_name] = int(text)
        except ValueError:
            raise ConfigurationError(f"Setting {key} must be a whole number of sats, got {raw!r}")

    try:
        return FundingConfig(**kwargs)
    except ValueError as e:
        raise ConfigurationError(str(e))


def funding_setting_values(updates: Dict[str, Any]) -> Dict[str, str]:
    """FundingConfig field updates as settings rows (key -> text value)"""
    keys = {field_name: key for key, field_name in FUNDING_SETTING_KEYS.items()}
    values = {}
    for field_name, value in updates.items():
        key = keys.get(field_name)
        if key is None:
            raise ConfigurationError(f"Unknown funding setting {field_name!r}")
        if isinstance(value, bool):
            values[key] = 'true' if value else 'false'
        else:
            values[key] = str(int(value))
    return values


class SettingsRepository:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def load_funding_config(self) -> FundingConfig:
        async with self.db_pool.acquire() as conn:
            values = await self._funding_rows(conn)
        return parse_funding_config(values)

    async def _funding_rows(self, conn) -> Dict[str, str]:
        rows = await conn.fetch("""
            SELECT key, value
            FROM super_admin_settings
            WHERE key = ANY($1::text[])
        """, list(FUNDING_SETTING_KEYS))
        return {row['key']: row['value'] for row in rows}

    async def save_funding_config(self, updates: Dict[str, Any], updated_by: str) -> FundingConfig:
        """
        Partial update of the funding settings.

        The merged configuration is validated before anything is written;
        the upserts run in one transaction.

        Returns:
            The configuration now in effect
        """
        values = funding_setting_values(updates)
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                config = parse_funding_config({**await self._funding_rows(conn), **values})
                await conn.executemany("""
                    INSERT INTO super_admin_settings (key, value, updated_by, updated_at)
                    VALUES ($1, $2, $3, NOW())
                    ON CONFLICT (key) DO UPDATE
                    SET value = EXCLUDED.value,
                        updated_by = EXCLUDED.updated_by,
                        updated_at = NOW()
                """, [(key, value, updated_by) for key, value in values.items()])

        logger.info(f"⚙️  Funding settings updated by {updated_by}: {', '.join(sorted(values))}")
        return config
