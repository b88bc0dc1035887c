import logging
import time

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from gradschool.config import settings
from gradschool.db import SessionLocal
from gradschool.services.student_record_sync_service import sync_pending_defense_records


scheduler = BackgroundScheduler(timezone=settings.app_timezone)
logger = logging.getLogger(__name__)


def _with_db(task):
    db: Session = SessionLocal()
    try:
        return task(db)
    finally:
        db.close()


def run_timed_job(label: str, task):
    start = time.perf_counter()
    logger.info('job_start name=%s', label)
    status = 'ok'
    try:
        return _with_db(task)
    except Exception:
        status = 'failed'
        logger.exception('job_failed name=%s', label)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info('job_end name=%s status=%s duration_ms=%.2f', label, status, duration_ms)


def sync_retry_job():
    result = run_timed_job('student_record_sync_retry', lambda db: sync_pending_defense_records(db))
    if result and result.get('failed'):
        logger.warning('student_record_sync_retry_failures ids=%s', result['failed'])
    return result


def start_scheduler():
    if settings.enable_sync_retry_job:
        scheduler.add_job(
            sync_retry_job,
            'interval',
            minutes=max(1, int(settings.sync_retry_interval_minutes)),
            id='student_record_sync_retry',
            replace_existing=True,
        )

    if scheduler.get_jobs() and not scheduler.running:
        scheduler.start()


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
