"""Materials checklist and shopping list.

Both lists are flat tables of snapshot rows: an item remembers which tutorial
or recipe it came from, but nothing breaks when that aggregate is deleted.
"""

import logging

from sqlalchemy.orm import Session

from ..models import ChecklistItem, ShoppingListItem, generate_uuid
from ..schemas import ChecklistItemCreate, ShoppingListItemCreate

logger = logging.getLogger("makerbook.lists")


class _ListService:
    model: type

    def __init__(self, db: Session):
        self.db = db

    def list(self):
        return self.db.query(self.model).order_by(self.model.created_at.desc()).all()

    def get(self, item_id: str):
        return self.db.get(self.model, item_id)

    def toggle(self, item_id: str):
        item = self.get(item_id)
        if not item:
            return None
        item.checked = 0 if item.checked else 1
        self.db.commit()
        self.db.refresh(item)
        return item

    def remove(self, item_id: str) -> bool:
        item = self.get(item_id)
        if not item:
            return False
        self.db.delete(item)
        self.db.commit()
        return True

    def clear(self) -> int:
        count = self.db.query(self.model).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Cleared {count} rows from {self.model.__tablename__}")
        return count


class ChecklistService(_ListService):
    model = ChecklistItem

    def add(self, item: ChecklistItemCreate) -> ChecklistItem:
        row = ChecklistItem(
            id=generate_uuid(),
            name=item.name,
            quantity=item.quantity,
            unit=item.unit,
            notes=item.notes,
            tutorial_id=item.tutorial_id,
            item_type=item.item_type,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row


class ShoppingListService(_ListService):
    model = ShoppingListItem

    def add(self, item: ShoppingListItemCreate) -> ShoppingListItem:
        row = ShoppingListItem(
            id=generate_uuid(),
            ingredient_name=item.ingredient_name,
            quantity=item.quantity,
            unit=item.unit,
            notes=item.notes,
            recipe_id=item.recipe_id,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row
