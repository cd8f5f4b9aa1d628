from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import ChecklistItemCreate, ChecklistItemOut
from ..services.lists import ChecklistService

router = APIRouter()


@router.get("", response_model=list[ChecklistItemOut])
def list_checklist(db: Session = Depends(get_db)):
    return ChecklistService(db).list()


@router.post("", response_model=ChecklistItemOut, status_code=status.HTTP_201_CREATED)
def add_checklist_item(item: ChecklistItemCreate, db: Session = Depends(get_db)):
    return ChecklistService(db).add(item)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_checklist(db: Session = Depends(get_db)):
    ChecklistService(db).clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/toggle", response_model=ChecklistItemOut)
def toggle_checklist_item(item_id: str, db: Session = Depends(get_db)):
    item = ChecklistService(db).toggle(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_checklist_item(item_id: str, db: Session = Depends(get_db)):
    if not ChecklistService(db).remove(item_id):
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
