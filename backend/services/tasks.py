import logging
import datetime
from typing import Optional
from sqlalchemy.orm import Session

from models import db_models
from settings import settings

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def list_tasks(db: Session, user_id: str):
    purge_completed_tasks(db)
    return (
        db.query(db_models.TaskDB)
        .filter(db_models.TaskDB.user_id == user_id)
        .order_by(db_models.TaskDB.created_at.desc())
        .all()
    )


def get_task(db: Session, user_id: str, task_id: str):
    return (
        db.query(db_models.TaskDB)
        .filter(db_models.TaskDB.id == task_id, db_models.TaskDB.user_id == user_id)
        .first()
    )


def create_task(db: Session, user_id: str, text: str):
    now = _utcnow()
    task = db_models.TaskDB(user_id=user_id, text=text.strip(), completed=False, created_at=now, updated_at=now)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def set_completed(db: Session, user_id: str, task_id: str, completed: bool,
                  now: Optional[datetime.datetime] = None):
    task = get_task(db, user_id, task_id)
    if task is None:
        return None
    now = now or _utcnow()
    if completed and not task.completed:
        task.completed_at = now
    elif not completed and task.completed:
        task.completed_at = None
    task.completed = completed
    task.updated_at = now
    db.commit()
    db.refresh(task)
    return task


def toggle_task(db: Session, user_id: str, task_id: str):
    task = get_task(db, user_id, task_id)
    if task is None:
        return None
    return set_completed(db, user_id, task_id, not task.completed)


def delete_task(db: Session, user_id: str, task_id: str) -> bool:
    task = get_task(db, user_id, task_id)
    if task is None:
        return False
    db.delete(task)
    db.commit()
    return True


def purge_completed_tasks(db: Session, now: Optional[datetime.datetime] = None) -> int:
    """Delete tasks completed more than TASK_RETENTION_DAYS ago."""
    cutoff = (now or _utcnow()) - datetime.timedelta(days=settings.TASK_RETENTION_DAYS)
    count = (
        db.query(db_models.TaskDB)
        .filter(
            db_models.TaskDB.completed.is_(True),
            db_models.TaskDB.completed_at.isnot(None),
            db_models.TaskDB.completed_at < cutoff,
        )
        .delete(synchronize_session=False)
    )
    if count:
        db.commit()
        logger.info("[Tasks] Purged %d completed tasks", count)
    return count
