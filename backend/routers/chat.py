import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from models.schemas import ChatRequest, ConversationOut, ConversationRename
from services import files, history, reconciler
from services.profile import current_user, full_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

@router.post("")
async def chat_completion(request: ChatRequest, db: Session = Depends(get_db), user=Depends(current_user)):
    speaker = reconciler.Speaker.from_user(user, full_name(user))

    attachment = None
    file_ref = None
    if request.image:
        attachment = {"data": request.image, "mime_type": request.image_mime_type or "image/png"}
    elif request.file_id:
        record = files.get_file(db, speaker.id, request.file_id)
        if record is None:
            raise HTTPException(status_code=404, detail="File not found")
        try:
            data = files.read_file_base64(record)
        except FileNotFoundError:
            logger.error("[Chat] Blob missing for attached file %s", request.file_id)
            raise HTTPException(status_code=404, detail="File content missing")
        attachment = {"data": data, "mime_type": record.type}
        file_ref = {"name": record.name, "type": record.type}

    if not request.text.strip() and attachment is None:
        raise HTTPException(status_code=400, detail="Message text is empty")

    state = reconciler.begin_turn(
        db,
        speaker,
        request.text,
        conversation_id=request.conversation_id,
        image=request.image,
        image_mime_type=attachment["mime_type"] if request.image else None,
        file=file_ref,
    )
    if state is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    # The stream opens its own sessions; the request-scoped one may be closed before it finishes.
    generator = reconciler.stream_reply(state, request.text, speaker, attachment=attachment)

    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={"x-conversation-id": state.id}  # Inform the frontend
    )

@router.get("/conversations", response_model=List[ConversationOut])
def read_conversations(skip: int = 0, limit: int = 100, db: Session = Depends(get_db), user=Depends(current_user)):
    return history.get_conversations(db, user.id, limit=limit, offset=skip)

@router.get("/conversations/{conversation_id}", response_model=ConversationOut)
def read_conversation(conversation_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    conv = history.get_conversation(db, user.id, conversation_id)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conv

@router.put("/conversations/{conversation_id}", response_model=ConversationOut)
def rename_conversation(conversation_id: str, data: ConversationRename, db: Session = Depends(get_db),
                        user=Depends(current_user)):
    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is empty")
    conv = history.update_conversation_title(db, user.id, conversation_id, title)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conv

@router.delete("/conversations/{conversation_id}")
def delete_conversation(conversation_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    if not history.delete_conversation(db, user.id, conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    logger.info("[Chat] Deleted conversation %s", conversation_id)
    return {"status": "success", "id": conversation_id}
