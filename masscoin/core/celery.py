# masscoin/core/celery.py
from celery import Celery

from masscoin.core.config import settings

celery_app = Celery(
    "masscoin_tasks",
    broker=settings.RABBITMQ_URL,
    backend=settings.REDIS_URL,
    include=[
        "masscoin.tasks.expiry_sweeper",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_proc_alive_timeout=30,
    worker_send_task_events=True,
    broker_connection_retry_on_startup=True,
    task_track_started=True,
)

celery_app.conf.beat_schedule = {
    "expire-stale-transfer-requests": {
        "task": "masscoin.tasks.expiry_sweeper.expire_stale_transfer_requests",
        # Cadence is independent of TRANSFER_REQUEST_TTL_SECONDS
        "schedule": float(settings.EXPIRY_SWEEP_INTERVAL_SECONDS),
    },
}


async def check_connection() -> bool:
    try:
        with celery_app.connection_or_acquire() as conn:
            conn.ensure_connection(max_retries=1)
            return True
    except Exception:
        return False
