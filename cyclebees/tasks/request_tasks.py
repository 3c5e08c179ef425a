# cyclebees/tasks/request_tasks.py

from celery import shared_task
import structlog

from cyclebees.db.session import SessionLocal
from cyclebees.services.expiry_enforcer import ExpiryEnforcer

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3)
def expire_stale_requests(self):
    """
    Expire repair/rental requests left pending or unpaid past their deadline.
    Runs periodically via Celery Beat.
    """
    db = SessionLocal()
    try:
        expired_count = ExpiryEnforcer(db).sweep()
        logger.info("expiry_sweep_completed", expired_count=expired_count)
        return expired_count
    except Exception as exc:
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()
