import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import AddedToListOut, CreatedOut, TutorialListOut, TutorialOut
from ..services.content_schemas import get_schema
from ..services.content_store import TutorialStore
from ..services.normalize import normalize

router = APIRouter()
logger = logging.getLogger("makerbook.tutorials")


@router.get("/tutorials", response_model=list[TutorialListOut])
def list_tutorials(db: Session = Depends(get_db)):
    """Stored tutorials, newest first."""
    return TutorialStore(db).list()


@router.post("/tutorials", response_model=CreatedOut, status_code=status.HTTP_201_CREATED)
def create_tutorial(payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """Save a tutorial. The body may be a raw extraction payload; it is normalized first."""
    source_url = payload.get("source_url") if isinstance(payload.get("source_url"), str) else None
    try:
        content = normalize(payload, get_schema("tutorial"))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CreatedOut(id=TutorialStore(db).save(content, source_url=source_url))


@router.get("/tutorials/{tutorial_id}", response_model=TutorialOut)
def get_tutorial(tutorial_id: str, db: Session = Depends(get_db)):
    tutorial = TutorialStore(db).load(tutorial_id)
    if not tutorial:
        raise HTTPException(status_code=404, detail="Tutorial not found")
    return tutorial


@router.delete("/tutorials/{tutorial_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tutorial(tutorial_id: str, db: Session = Depends(get_db)):
    if not TutorialStore(db).delete(tutorial_id):
        raise HTTPException(status_code=404, detail="Tutorial not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tutorials/{tutorial_id}/checklist", response_model=AddedToListOut)
def add_tutorial_to_checklist(tutorial_id: str, db: Session = Depends(get_db)):
    """Copy the tutorial's materials and required tools into the checklist."""
    added = TutorialStore(db).add_to_checklist(tutorial_id)
    if added is None:
        raise HTTPException(status_code=404, detail="Tutorial not found")
    logger.info(f"Added {added} items from tutorial {tutorial_id} to the checklist")
    return AddedToListOut(added=added)
