from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import ShoppingListItemCreate, ShoppingListItemOut
from ..services.lists import ShoppingListService

router = APIRouter()


@router.get("", response_model=list[ShoppingListItemOut])
def list_shopping_list(db: Session = Depends(get_db)):
    return ShoppingListService(db).list()


@router.post("", response_model=ShoppingListItemOut, status_code=status.HTTP_201_CREATED)
def add_shopping_list_item(item: ShoppingListItemCreate, db: Session = Depends(get_db)):
    return ShoppingListService(db).add(item)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_shopping_list(db: Session = Depends(get_db)):
    ShoppingListService(db).clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/toggle", response_model=ShoppingListItemOut)
def toggle_shopping_list_item(item_id: str, db: Session = Depends(get_db)):
    item = ShoppingListService(db).toggle(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Shopping list item not found")
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_shopping_list_item(item_id: str, db: Session = Depends(get_db)):
    if not ShoppingListService(db).remove(item_id):
        raise HTTPException(status_code=404, detail="Shopping list item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
