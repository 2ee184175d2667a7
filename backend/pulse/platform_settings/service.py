"""Typed access to the platform_settings table.

JSON-valued settings that drive computation are parsed into versioned pydantic
models. Writes are validated up front; a stored value that no longer validates
is logged and the caller's compiled default is used instead.
"""

from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.platform_settings.models import PlatformSetting
from pulse.platform_settings.schemas import RetentionPolicy, SeverityThresholdTable

logger = structlog.get_logger()

SEVERITY_THRESHOLDS_KEY = "cross_stream_severity_thresholds"
RETENTION_MONTHS_KEY = "data_retention_months"
LAST_RETENTION_RUN_KEY = "last_data_retention_run"

SETTING_SCHEMAS: dict[str, type[BaseModel]] = {
    SEVERITY_THRESHOLDS_KEY: SeverityThresholdTable,
    RETENTION_MONTHS_KEY: RetentionPolicy,
}

M = TypeVar("M", bound=BaseModel)


class SettingValidationError(ValueError):
    """Raised when a configuration write does not match the expected shape."""

    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"Invalid value for setting '{key}': {message}")


def validate_setting(key: str, value: Any) -> BaseModel:
    schema = SETTING_SCHEMAS.get(key)
    if schema is None:
        raise SettingValidationError(key, "unknown setting key")
    try:
        return schema.model_validate(value)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
            for err in exc.errors()
        )
        raise SettingValidationError(key, details) from exc


async def get_setting_row(db: AsyncSession, key: str) -> PlatformSetting | None:
    result = await db.execute(select(PlatformSetting).where(PlatformSetting.key == key))
    return result.scalar_one_or_none()


async def get_setting(db: AsyncSession, key: str, fallback: M) -> M:
    """Return the stored setting parsed as ``type(fallback)``, or *fallback*."""
    row = await get_setting_row(db, key)
    if row is None or row.value is None:
        return fallback
    try:
        return type(fallback).model_validate(row.value)
    except ValidationError as exc:
        logger.error("platform_setting_invalid", key=key, error=str(exc))
        return fallback


async def put_setting(
    db: AsyncSession,
    key: str,
    value: Any,
    description: str | None = None,
) -> PlatformSetting:
    """Validate and persist a typed setting. Raises SettingValidationError."""
    parsed = validate_setting(key, value)
    row = await record_setting(db, key, parsed.model_dump(), description)
    logger.info("platform_setting_updated", key=key)
    return row


async def record_setting(
    db: AsyncSession,
    key: str,
    value: Any,
    description: str | None = None,
) -> PlatformSetting:
    """Upsert a raw setting value (used for bookkeeping keys written by the core)."""
    row = await get_setting_row(db, key)
    if row:
        row.value = value
        if description is not None:
            row.description = description
    else:
        row = PlatformSetting(key=key, value=value, description=description)
        db.add(row)

    await db.commit()
    await db.refresh(row)
    return row
