# masscoin/tasks/expiry_sweeper.py
from asgiref.sync import async_to_sync

from masscoin.core import database
from masscoin.core.celery import celery_app
from masscoin.domains.ledger.service import ledger_service
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)


async def sweep_expired_requests() -> int:
    """One sweep with its own engine and HTTP clients (fresh event loop per run)"""
    await ledger_service.initialize()
    try:
        return await ledger_service.expire_stale_requests()
    finally:
        await ledger_service.shutdown()
        await database.close_db()


@celery_app.task(bind=True, max_retries=3)
def expire_stale_transfer_requests(self):
    """Expire PENDING transfer requests past their TTL and refund senders"""
    try:
        expired = async_to_sync(sweep_expired_requests)()
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}")
        raise self.retry(exc=e, countdown=60)
    logger.info(f"Expiry sweep finished, {expired} requests expired")
    return expired
