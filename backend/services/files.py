import os
import base64
import secrets
import time
import logging
import datetime
from typing import Optional
from sqlalchemy.orm import Session

from models import db_models
from settings import settings

logger = logging.getLogger(__name__)

FILES_BUCKET = "user-files"


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def _blob_path(file_path: str) -> str:
    return os.path.join(settings.bucket_dir(FILES_BUCKET), file_path)


def _remove_blob(file_path: str):
    path = _blob_path(file_path)
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("[Files] Blob already gone: %s", file_path)


def save_file(db: Session, user_id: str, name: str, content_type: str, content: bytes,
              now: Optional[datetime.datetime] = None):
    """Write the blob under the user's folder, then record its metadata with a 24h expiry."""
    now = now or _utcnow()
    ext = name.rsplit(".", 1)[-1] if "." in name else "bin"
    file_path = f"{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"

    os.makedirs(os.path.dirname(_blob_path(file_path)), exist_ok=True)
    with open(_blob_path(file_path), "wb") as f:
        f.write(content)

    record = db_models.FileDB(
        user_id=user_id,
        name=name,
        type=content_type or "application/octet-stream",
        size=len(content),
        file_path=file_path,
        expires_at=now + datetime.timedelta(hours=settings.FILE_EXPIRATION_HOURS),
        created_at=now,
    )
    try:
        db.add(record)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("[Files] Saving metadata failed for %s, removing uploaded blob", name)
        _remove_blob(file_path)
        raise
    db.refresh(record)
    return record


def _owned(db: Session, user_id: str, file_id: str):
    return db.query(db_models.FileDB).filter(db_models.FileDB.id == file_id, db_models.FileDB.user_id == user_id)


def get_file(db: Session, user_id: str, file_id: str, now: Optional[datetime.datetime] = None):
    """Returns the file only while it has not expired, even if the purge has not run yet."""
    now = now or _utcnow()
    return _owned(db, user_id, file_id).filter(db_models.FileDB.expires_at > now).first()


def list_files(db: Session, user_id: str, now: Optional[datetime.datetime] = None):
    now = now or _utcnow()
    purge_expired_files(db, now=now)
    return (
        db.query(db_models.FileDB)
        .filter(db_models.FileDB.user_id == user_id, db_models.FileDB.expires_at > now)
        .order_by(db_models.FileDB.created_at.desc())
        .all()
    )


def read_file_base64(record) -> str:
    with open(_blob_path(record.file_path), "rb") as f:
        return base64.b64encode(f.read()).decode("ascii")


def delete_file(db: Session, user_id: str, file_id: str) -> bool:
    record = _owned(db, user_id, file_id).first()
    if record is None:
        return False
    _remove_blob(record.file_path)
    db.delete(record)
    db.commit()
    return True


def purge_expired_files(db: Session, now: Optional[datetime.datetime] = None) -> int:
    now = now or _utcnow()
    expired = db.query(db_models.FileDB).filter(db_models.FileDB.expires_at <= now).all()
    for record in expired:
        _remove_blob(record.file_path)
        db.delete(record)
    if expired:
        db.commit()
        logger.info("[Files] Purged %d expired files", len(expired))
    return len(expired)
