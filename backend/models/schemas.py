from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Literal
from datetime import datetime

class FileRef(BaseModel):
    name: str
    type: str

class Message(BaseModel):
    id: str
    sender: Literal["user", "assistant"]
    text: str
    image: Optional[str] = None
    image_mime_type: Optional[str] = None
    file: Optional[FileRef] = None
    timestamp: int

class ChatRequest(BaseModel):
    text: str
    conversation_id: Optional[str] = None
    image: Optional[str] = None  # base64, no data: prefix
    image_mime_type: Optional[str] = None
    file_id: Optional[str] = None

class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    messages: List[Message]
    created_at: datetime

class ConversationRename(BaseModel):
    title: str

class TaskCreate(BaseModel):
    text: str

class TaskUpdate(BaseModel):
    completed: bool

class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    text: str
    completed: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class FileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    size: int
    expires_at: datetime

class FileContent(BaseModel):
    id: str
    name: str
    type: str
    base64: str

class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    surname: str
    email: str
    avatar_path: Optional[str] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[str] = None

class ModelSelection(BaseModel):
    primary: str
    backup: str

class LlmProviderToggle(BaseModel):
    provider: Literal["gemini", "emulator"]

class ModelMetadata(BaseModel):
    id: str
    name: str
    role: Optional[Literal["primary", "backup"]] = None
