"""
Утилиты времени.

Назначение:
- единый формат времени (ISO UTC)
- naive-UTC значения для колонок БД (DateTime без таймзоны)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Текущее время в UTC (datetime).
    """
    return datetime.now(UTC)


def utc_now_iso() -> str:
    """
    Текущее время в UTC в ISO формате.
    """
    return utc_now().isoformat()


def db_now() -> datetime:
    """
    Текущее время для записи в БД: UTC без tzinfo.
    """
    return utc_now().replace(tzinfo=None)


def db_after_ms(delay_ms: int | float) -> datetime:
    return db_now() + timedelta(milliseconds=max(0, delay_ms))


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()
