"""Helpers shared by every source normalizer."""

import hashlib
import hmac
import re
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.config import settings
from pulse.models.base import Base

T = TypeVar("T", bound=Base)

TICKET_PATTERN = re.compile(r"([A-Z][A-Z0-9]+-\d+)")


class MalformedEvent(ValueError):
    """Payload is missing a field the normalizer cannot do without."""


async def insert_once(db: AsyncSession, model: type[T], key: dict[str, Any], **values: Any) -> tuple[T, bool]:
    """Insert a canonical row unless one with the same identifying *key* exists.

    Check-then-insert inside a SAVEPOINT; the table's unique constraint is the
    final guard, so a concurrent dispatcher losing the race sees an
    IntegrityError, which is treated as "already present".

    Returns ``(row, created)``.
    """
    existing = await _find_by_key(db, model, key)
    if existing is not None:
        return existing, False

    row = model(**key, **values)
    try:
        async with db.begin_nested():
            db.add(row)
            await db.flush()
    except IntegrityError:
        existing = await _find_by_key(db, model, key)
        if existing is None:
            raise
        return existing, False
    return row, True


async def _find_by_key(db: AsyncSession, model: type[T], key: dict[str, Any]) -> T | None:
    clauses = [
        getattr(model, column).is_(None) if value is None else getattr(model, column) == value
        for column, value in key.items()
    ]
    result = await db.execute(select(model).where(*clauses).limit(1))
    return result.scalar_one_or_none()


def hash_identity(identifier: str) -> str:
    """Pseudonymise a login: HMAC-SHA256 under HMAC_KEY, plain SHA-256 without one."""
    if settings.HMAC_KEY:
        return hmac.new(settings.HMAC_KEY.encode(), msg=identifier.encode(), digestmod=hashlib.sha256).hexdigest()
    return hashlib.sha256(identifier.encode()).hexdigest()


def extract_ticket_id(*texts: str | None) -> str | None:
    """First ``ABC-123`` style key found, searching *texts* in order."""
    for text in texts:
        if not text:
            continue
        match = TICKET_PATTERN.search(text)
        if match:
            return match.group(1)
    return None


def parse_timestamp(value: Any) -> datetime:
    """ISO-8601 string or epoch milliseconds -> aware UTC datetime."""
    if value is None or value == "":
        raise MalformedEvent("missing timestamp")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise MalformedEvent(f"unparseable timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
