"""
定时任务调度器

运行方式：
    python -m app.worker.scheduler
"""

import logging
from datetime import timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.db import create_db_engine
from app.integrations.stripe_gateway import build_gateway
from app.worker.tasks import sweep_pending_payments

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    engine = create_db_engine()
    gateway = build_gateway()

    scheduler = BlockingScheduler(timezone=timezone.utc)
    scheduler.add_job(
        sweep_pending_payments,
        IntervalTrigger(minutes=settings.PAYMENT_SWEEP_INTERVAL_MINUTES),
        args=[engine, gateway],
        id="sweep_pending_payments",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Scheduler started. Pending payment sweep runs every %d minutes.",
        settings.PAYMENT_SWEEP_INTERVAL_MINUTES,
    )
    try:
        scheduler.start()
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
