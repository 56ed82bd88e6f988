from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import ProfileOut, ProfileUpdate
from services import profile
from services.profile import current_user
from settings import settings

router = APIRouter(prefix="/profile", tags=["profile"])

@router.get("", response_model=ProfileOut)
def read_profile(user=Depends(current_user)):
    return user

@router.put("", response_model=ProfileOut)
def update_profile(data: ProfileUpdate, db: Session = Depends(get_db), user=Depends(current_user)):
    return profile.update_profile(db, user, name=data.name, surname=data.surname, email=data.email)

@router.post("/avatar", response_model=ProfileOut)
async def upload_avatar(file: UploadFile = File(...), db: Session = Depends(get_db), user=Depends(current_user)):
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Avatar must be an image")
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    return profile.save_avatar(db, user, file.filename or "avatar.png", content)
