from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from models.schemas import TaskCreate, TaskOut, TaskUpdate
from services import tasks
from services.profile import current_user

router = APIRouter(prefix="/projects", tags=["projects"])

@router.get("", response_model=List[TaskOut])
def list_tasks(db: Session = Depends(get_db), user=Depends(current_user)):
    return tasks.list_tasks(db, user.id)

@router.post("", response_model=TaskOut, status_code=201)
def add_task(data: TaskCreate, db: Session = Depends(get_db), user=Depends(current_user)):
    if not data.text.strip():
        raise HTTPException(status_code=400, detail="Task text is empty")
    return tasks.create_task(db, user.id, data.text)

@router.patch("/{task_id}", response_model=TaskOut)
def update_task(task_id: str, data: TaskUpdate, db: Session = Depends(get_db), user=Depends(current_user)):
    task = tasks.set_completed(db, user.id, task_id, data.completed)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task

@router.post("/{task_id}/toggle", response_model=TaskOut)
def toggle_task(task_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    task = tasks.toggle_task(db, user.id, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task

@router.delete("/{task_id}")
def delete_task(task_id: str, db: Session = Depends(get_db), user=Depends(current_user)):
    if not tasks.delete_task(db, user.id, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "success", "id": task_id}
