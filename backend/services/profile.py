import os
import time
import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models import db_models
from settings import settings

logger = logging.getLogger(__name__)

AVATAR_BUCKET = "avatars"


def full_name(user) -> str:
    name = (user.name or "").strip()
    surname = (user.surname or "").strip()
    if name and surname:
        return f"{name} {surname}"
    return name or surname or "User"


def get_or_create_user(db: Session, user_id: str, email: str = "", name: str = "", surname: str = ""):
    user = db.get(db_models.UserDB, user_id)
    if user is None:
        user = db_models.UserDB(id=user_id, email=email, name=name, surname=surname)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("[Profile] Registered user %s", user_id)
    return user


def current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_surname: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """Identity comes from the provider in front of the service; we only mirror the profile."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    # The id names the user's bucket folders
    if "/" in x_user_id or "\\" in x_user_id or ".." in x_user_id:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")
    return get_or_create_user(
        db, x_user_id, email=x_user_email or "", name=x_user_name or "", surname=x_user_surname or ""
    )


def update_profile(db: Session, user, name: Optional[str] = None, surname: Optional[str] = None,
                   email: Optional[str] = None):
    if name is not None:
        user.name = name.strip()
    if surname is not None:
        user.surname = surname.strip()
    if email is not None:
        user.email = email.strip()
    db.commit()
    db.refresh(user)
    return user


def save_avatar(db: Session, user, filename: str, content: bytes):
    ext = os.path.splitext(filename)[1].lower() or ".png"
    folder = os.path.join(settings.bucket_dir(AVATAR_BUCKET), user.id)
    os.makedirs(folder, exist_ok=True)
    relative = f"{user.id}/avatar-{int(time.time() * 1000)}{ext}"
    with open(os.path.join(settings.bucket_dir(AVATAR_BUCKET), relative), "wb") as f:
        f.write(content)

    previous = user.avatar_path
    user.avatar_path = f"{AVATAR_BUCKET}/{relative}"
    db.commit()
    db.refresh(user)

    if previous:
        old = os.path.join(settings.data_dir, previous)
        if os.path.exists(old):
            os.remove(old)
    return user
