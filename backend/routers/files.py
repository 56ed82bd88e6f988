import logging
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from models.schemas import FileContent, FileOut
from services import files
from services.profile import current_user
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

@router.get("", response_model=List[FileOut])
def list_files(db: Session = Depends(get_db), user=Depends(current_user)):
    return files.list_files(db, user.id)

@router.post("", response_model=FileOut, status_code=201)
async def upload_file(file: UploadFile = File(...), db: Session = Depends(get_db), user=Depends(current_user)):
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    try:
        return files.save_file(db, user.id, file.filename or "upload", file.content_type, content)
    except Exception:
        raise HTTPException(status_code=500, detail="Saving file failed")

@router.get("/{file_id}/content", response_model=FileContent)
def read_file(file_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    record = files.get_file(db, user.id, file_id)
    if record is None:
        raise HTTPException(status_code=404, detail="File not found")
    try:
        data = files.read_file_base64(record)
    except FileNotFoundError:
        logger.error("[Files] Blob missing for %s", file_id)
        raise HTTPException(status_code=404, detail="File content missing")
    return FileContent(id=record.id, name=record.name, type=record.type, base64=data)

@router.delete("/{file_id}")
def delete_file(file_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    if not files.delete_file(db, user.id, file_id):
        raise HTTPException(status_code=404, detail="File not found")
    return {"status": "success", "id": file_id}
