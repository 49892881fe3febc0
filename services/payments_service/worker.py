"""ARQ worker for enrollment fulfillment retries."""

from urllib.parse import urlparse

from arq import cron
from arq.connections import RedisSettings
from libs.common.config import get_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _redis_settings() -> RedisSettings:
    parsed = urlparse(get_settings().REDIS_URL)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or 0),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
    )


async def startup(ctx: dict):
    from services.payments_service.catalog_client import CatalogClient

    configure_logging()
    ctx["catalog_client"] = CatalogClient()


async def task_retry_enrollments(ctx: dict):
    from services.payments_service.tasks import retry_pending_enrollments

    logger.info("Running: retry_pending_enrollments")
    await retry_pending_enrollments(ctx["catalog_client"])


class WorkerSettings:
    redis_settings = _redis_settings()

    on_startup = startup

    functions = [task_retry_enrollments]

    cron_jobs = [
        cron(
            task_retry_enrollments,
            minute={1, 6, 11, 16, 21, 26, 31, 36, 41, 46, 51, 56},
            run_at_startup=True,
        ),
    ]
