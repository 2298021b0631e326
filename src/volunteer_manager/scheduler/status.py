"""
Статус планировщика.

Назначение:
- Снимок состояния цикла (последний тик, счётчики)
- Публикация heartbeat в Redis воркером и чтение его процессом API
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import redis

from volunteer_manager.common.config import get_settings

STATUS_KEY = "vm:scheduler:status"
NOT_RUNNING_ALERT = "scheduler is not running"

_client: redis.Redis | None = None


def redis_client() -> redis.Redis:
    """
    Singleton Redis client.
    """
    global _client
    if _client is None:
        _client = redis.Redis.from_url(get_settings().redis_url, decode_responses=True)
    return _client


@dataclass
class SchedulerStatus:
    mode: str
    owner: str | None = None
    last_execution: datetime | None = None
    execution_count: int = 0
    invocation_count: int = 0
    penalty_multiplier: int = 1
    error: str | None = None

    @property
    def alert(self) -> str | None:
        if self.error:
            return self.error
        if self.last_execution is None:
            return NOT_RUNNING_ALERT
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "owner": self.owner,
            "last_execution": self.last_execution.isoformat() if self.last_execution else None,
            "execution_count": self.execution_count,
            "invocation_count": self.invocation_count,
            "penalty_multiplier": self.penalty_multiplier,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerStatus:
        last = data.get("last_execution")
        return cls(
            mode=str(data.get("mode") or "worker"),
            owner=data.get("owner"),
            last_execution=datetime.fromisoformat(last) if last else None,
            execution_count=int(data.get("execution_count") or 0),
            invocation_count=int(data.get("invocation_count") or 0),
            penalty_multiplier=int(data.get("penalty_multiplier") or 1),
        )


def publish_status(status: SchedulerStatus, *, client: redis.Redis | None = None) -> None:
    """
    Heartbeat живёт SCHEDULER_STATUS_TTL_SEC: остановленный воркер «пропадает» сам.
    """
    r = client or redis_client()
    r.set(
        STATUS_KEY,
        json.dumps(status.to_dict(), ensure_ascii=False),
        ex=max(1, get_settings().scheduler_status_ttl_sec),
    )


def read_status(*, client: redis.Redis | None = None) -> SchedulerStatus | None:
    r = client or redis_client()
    raw = r.get(STATUS_KEY)
    if not raw:
        return None
    try:
        return SchedulerStatus.from_dict(json.loads(raw))
    except (ValueError, TypeError):
        return None
