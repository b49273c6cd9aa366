# src/scheduler/tasks.py
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session
from config import settings
from database import SessionLocal
from scheduler.services import ExpirationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_scheduler = None

def run_expiration_sweep():
    """Deactivate elapsed grants and refresh user summaries."""
    logger.info("Starting run_expiration_sweep task")
    db: Session = SessionLocal()
    try:
        result = ExpirationService.sweep(db)
        logger.info(f"Expiration sweep deactivated {result.deactivated_count} records")
    except Exception as e:
        logger.error(f"Error in run_expiration_sweep: {str(e)}")
    finally:
        db.close()
    logger.info("Finished run_expiration_sweep task")

def run_expiration_reminders():
    """Mail reminders for grants that are about to end."""
    logger.info("Starting run_expiration_reminders task")
    db: Session = SessionLocal()
    try:
        ExpirationService.send_expiration_reminders(db)
    except Exception as e:
        logger.error(f"Error in run_expiration_reminders: {str(e)}")
    finally:
        db.close()
    logger.info("Finished run_expiration_reminders task")

def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler once per process."""
    global _scheduler
    if _scheduler is not None:
        return _scheduler
    scheduler = BackgroundScheduler()
    scheduler.add_job(run_expiration_sweep, 'interval', hours=settings.SWEEP_INTERVAL_HOURS, id="expiration_sweep")
    if settings.REMINDERS_ENABLED:
        scheduler.add_job(run_expiration_reminders, 'interval', days=1, id="expiration_reminders")
    scheduler.start()
    _scheduler = scheduler
    return scheduler

def shutdown_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None

def run_startup_tasks():
    """Run once by the application entry point, never on import."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled, skipping startup sweep")
        return
    run_expiration_sweep()
    if settings.REMINDERS_ENABLED:
        run_expiration_reminders()
    start_scheduler()
