"""
Worker Scheduler.

Назначение:
- выполнять задачи планировщика (SendEmailTask, SendSmsTask, ...)
- публиковать heartbeat в Redis для /v1/admin/scheduler

Можно запускать несколько реплик: задачи захватываются атомарно.
"""

from __future__ import annotations

import signal

from volunteer_manager.common.config import get_settings
from volunteer_manager.common.logging import get_project_logger, setup_logging
from volunteer_manager.scheduler.runner import Scheduler

log = get_project_logger()


def main() -> None:
    setup_logging()
    settings = get_settings()
    if settings.scheduler_mode == "off":
        log.warning("worker_scheduler_disabled", extra={"payload": {"mode": "off"}})
        return

    scheduler = Scheduler(mode="worker", publish_heartbeat=True)

    def _shutdown(signum, _frame) -> None:
        log.info("worker_scheduler_signal", extra={"payload": {"signal": signum}})
        scheduler.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    log.info(
        "worker_scheduler_started",
        extra={
            "payload": {
                "owner": scheduler.owner,
                "interval_ms": scheduler.interval_ms,
                "batch_limit": scheduler.batch_limit,
                "claim_ttl_sec": scheduler.claim_ttl_sec,
            }
        },
    )
    scheduler.run_forever()


if __name__ == "__main__":
    main()
