"""ARQ worker for fulfillment status refresh and on-hold repair."""

from urllib.parse import urlparse

from arq import cron
from arq.connections import RedisSettings
from libs.common.config import get_settings
from libs.common.logging import configure_logging, get_logger
from services.fulfillment_service.dependencies import require_upstream_credentials

logger = get_logger(__name__)


def _redis_settings() -> RedisSettings:
    parsed = urlparse(get_settings().REDIS_URL)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
    )


async def startup(ctx: dict):
    configure_logging()
    require_upstream_credentials(get_settings())
    logger.info("Fulfillment worker started")


async def task_refresh_order_statuses(ctx: dict):
    from services.fulfillment_service.tasks import refresh_order_statuses

    logger.info("Running: refresh_order_statuses")
    summary = await refresh_order_statuses()
    return summary.model_dump(mode="json", exclude={"results"})


async def task_repair_on_hold_orders(ctx: dict, dry_run: bool = False):
    from services.fulfillment_service.tasks import repair_on_hold_orders

    logger.info("Running: repair_on_hold_orders (dry_run=%s)", dry_run)
    summary = await repair_on_hold_orders(dry_run=dry_run)
    return summary.model_dump(mode="json")


class WorkerSettings:
    redis_settings = _redis_settings()
    on_startup = startup

    functions = [
        task_refresh_order_statuses,
        task_repair_on_hold_orders,
    ]

    # Repair mutates upstream orders, so it is enqueue-only.
    cron_jobs = [
        cron(
            task_refresh_order_statuses,
            minute={0, 15, 30, 45},
            run_at_startup=True,
        ),
    ]
