import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import AddedToListOut, CreatedOut, RecipeListOut, RecipeOut
from ..services.content_schemas import get_schema
from ..services.content_store import RecipeStore
from ..services.normalize import normalize

router = APIRouter()
logger = logging.getLogger("makerbook.recipes")


@router.get("/recipes", response_model=list[RecipeListOut])
def list_recipes(db: Session = Depends(get_db)):
    """Stored recipes, newest first."""
    return RecipeStore(db).list()


@router.post("/recipes", response_model=CreatedOut, status_code=status.HTTP_201_CREATED)
def create_recipe(payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """Save a recipe. The body may be a raw extraction payload; it is normalized first."""
    source_url = payload.get("source_url") if isinstance(payload.get("source_url"), str) else None
    try:
        content = normalize(payload, get_schema("recipe"))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CreatedOut(id=RecipeStore(db).save(content, source_url=source_url))


@router.get("/recipes/{recipe_id}", response_model=RecipeOut)
def get_recipe(recipe_id: str, db: Session = Depends(get_db)):
    recipe = RecipeStore(db).load(recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return recipe


@router.delete("/recipes/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipe(recipe_id: str, db: Session = Depends(get_db)):
    if not RecipeStore(db).delete(recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/recipes/{recipe_id}/shopping-list", response_model=AddedToListOut)
def add_recipe_to_shopping_list(recipe_id: str, db: Session = Depends(get_db)):
    """Copy the recipe's ingredients into the shopping list."""
    added = RecipeStore(db).add_to_shopping_list(recipe_id)
    if added is None:
        raise HTTPException(status_code=404, detail="Recipe not found")
    logger.info(f"Added {added} ingredients from recipe {recipe_id} to the shopping list")
    return AddedToListOut(added=added)
