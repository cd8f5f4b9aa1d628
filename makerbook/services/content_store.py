"""Relational persistence for tutorial and recipe aggregates.

An aggregate is written as one parent row plus one row per child, with
``sort_order`` set to the child's position in its source list. Nested values
without a table of their own (measurements, helpful links, PPE lists, tags,
nutrition) go into ``*_json`` text columns and are parsed back on load; a
column that fails to parse reads back as an empty value.

Writes are batched into a single transaction.
"""

import json
import logging
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session, selectinload

from ..models import (
    ChecklistItem,
    GlossaryTerm,
    Ingredient,
    Instruction,
    Material,
    Recipe,
    ShoppingListItem,
    Step,
    StepImage,
    StepSafetyWarning,
    StepSkillReference,
    Tool,
    Tutorial,
    generate_uuid,
)
from ..schemas import (
    HelpfulLink,
    MeasurementConversion,
    Nutrition,
    RecipeContent,
    RecipeOut,
    TutorialContent,
    TutorialOut,
)

logger = logging.getLogger("makerbook.store")


def dump_json(value: Any) -> Optional[str]:
    """Serialize a nested value; empty lists and ``None`` are stored as NULL."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return json.dumps(value.model_dump(mode="json"))
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return json.dumps([
            item.model_dump(mode="json") if isinstance(item, BaseModel) else item
            for item in value
        ])
    return json.dumps(value)


def load_json(raw: Optional[str], default: Any, column: str = "") -> Any:
    """Parse a ``*_json`` column, falling back to ``default`` on bad data."""
    if not raw:
        return default
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Unparseable {column or 'json'} column, using empty value: {e}")
        return default
    if isinstance(default, list):
        if not isinstance(value, list):
            logger.warning(f"Expected a list in {column or 'json'} column, got {type(value).__name__}")
            return default
        return value
    if default is None and not isinstance(value, dict):
        logger.warning(f"Expected an object in {column or 'json'} column, got {type(value).__name__}")
        return None
    return value


def _model(raw: Optional[str], model: type[BaseModel], column: str) -> Optional[BaseModel]:
    """Parse a single sub-document column; mistyped content reads back as ``None``."""
    value = load_json(raw, None, column)
    if value is None:
        return None
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning(f"Invalid {column} column, using empty value: {e.error_count()} errors")
        return None


def _models(raw: Optional[str], model: type[BaseModel], column: str) -> list[BaseModel]:
    """Parse a list column, dropping entries that do not fit ``model``."""
    items = []
    for value in load_json(raw, [], column):
        try:
            items.append(model.model_validate(value))
        except ValidationError as e:
            logger.warning(f"Dropping invalid entry in {column} column: {e.error_count()} errors")
    return items


def _strings(items: Sequence[Any]) -> list[str]:
    return [str(item) for item in items if item is not None]


class ContentStore:
    """Shared transaction handling for the aggregate stores."""

    root: type

    def __init__(self, db: Session):
        self.db = db

    def save(self, content, source_url: Optional[str] = None) -> str:
        try:
            item_id = self._insert(content, source_url)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Saved {self.root.__tablename__} {item_id}")
        return item_id

    def list(self):
        return self.db.query(self.root).order_by(self.root.created_at.desc()).all()

    def exists(self, item_id: str) -> bool:
        return self.db.query(self.root.id).filter(self.root.id == item_id).first() is not None

    def delete(self, item_id: str) -> bool:
        if not self.exists(item_id):
            return False
        try:
            self._delete(item_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted {self.root.__tablename__} {item_id}")
        return True

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _insert(self, content, source_url: Optional[str]) -> str:
        raise NotImplementedError

    def _delete(self, item_id: str) -> None:
        raise NotImplementedError


class TutorialStore(ContentStore):
    root = Tutorial

    def _insert(self, content: TutorialContent, source_url: Optional[str]) -> str:
        tutorial_id = generate_uuid()
        self.db.add(Tutorial(
            id=tutorial_id,
            title=content.title,
            overview=content.overview,
            image_url=content.image_url,
            author=content.author,
            author_url=content.author_url,
            difficulty=content.difficulty,
            estimated_time=content.estimated_time,
            source_url=source_url,
            tags_json=dump_json(content.tags),
        ))

        for i, term in enumerate(content.glossary):
            self.db.add(GlossaryTerm(
                id=generate_uuid(),
                tutorial_id=tutorial_id,
                term=term.term,
                definition=term.definition,
                context=term.context,
                sort_order=i,
            ))

        for i, mat in enumerate(content.materials):
            self.db.add(Material(
                id=generate_uuid(),
                tutorial_id=tutorial_id,
                name=mat.name,
                quantity=mat.quantity,
                unit=mat.unit,
                notes=mat.notes,
                purchase_url=mat.purchase_url,
                measurement_json=dump_json(mat.measurement),
                sort_order=i,
            ))

        for i, tool in enumerate(content.tools):
            self.db.add(Tool(
                id=generate_uuid(),
                tutorial_id=tutorial_id,
                name=tool.name,
                notes=tool.notes,
                required=1 if tool.required else 0,
                sort_order=i,
            ))

        for i, step in enumerate(content.steps):
            step_id = generate_uuid()
            self.db.add(Step(
                id=step_id,
                tutorial_id=tutorial_id,
                step_number=step.step_number,
                title=step.title,
                instructions=step.instructions,
                tips=step.tips,
                measurements_json=dump_json(step.measurements),
                helpful_links_json=dump_json(step.helpful_links),
                sort_order=i,
            ))
            for j, url in enumerate(step.image_urls):
                self.db.add(StepImage(id=generate_uuid(), step_id=step_id, image_url=url, sort_order=j))
            for j, skill in enumerate(step.skill_references):
                self.db.add(StepSkillReference(
                    id=generate_uuid(),
                    step_id=step_id,
                    skill_name=skill.skill_name,
                    difficulty=skill.difficulty,
                    description=skill.description,
                    search_query=skill.search_query,
                    sort_order=j,
                ))
            for j, warning in enumerate(step.safety_warnings):
                self.db.add(StepSafetyWarning(
                    id=generate_uuid(),
                    step_id=step_id,
                    warning=warning.warning,
                    severity=warning.severity,
                    ppe_required_json=dump_json(warning.ppe_required),
                    sort_order=j,
                ))

        return tutorial_id

    def load(self, tutorial_id: str) -> Optional[TutorialOut]:
        tutorial = (
            self.db.query(Tutorial)
            .options(
                selectinload(Tutorial.glossary),
                selectinload(Tutorial.materials),
                selectinload(Tutorial.tools),
                selectinload(Tutorial.steps).selectinload(Step.images),
                selectinload(Tutorial.steps).selectinload(Step.skill_references),
                selectinload(Tutorial.steps).selectinload(Step.safety_warnings),
            )
            .filter(Tutorial.id == tutorial_id)
            .first()
        )
        if not tutorial:
            return None

        return TutorialOut(
            id=tutorial.id,
            title=tutorial.title,
            overview=tutorial.overview or "",
            image_url=tutorial.image_url,
            author=tutorial.author,
            author_url=tutorial.author_url,
            difficulty=tutorial.difficulty,
            estimated_time=tutorial.estimated_time,
            source_url=tutorial.source_url,
            tags=_strings(load_json(tutorial.tags_json, [], "tags_json")),
            created_at=tutorial.created_at,
            glossary=[
                {"id": g.id, "term": g.term, "definition": g.definition, "context": g.context}
                for g in tutorial.glossary
            ],
            materials=[
                {
                    "id": m.id,
                    "name": m.name,
                    "quantity": m.quantity,
                    "unit": m.unit,
                    "notes": m.notes,
                    "purchase_url": m.purchase_url,
                    "measurement": _model(m.measurement_json, MeasurementConversion, "measurement_json"),
                }
                for m in tutorial.materials
            ],
            tools=[
                {"id": t.id, "name": t.name, "notes": t.notes, "required": t.required == 1}
                for t in tutorial.tools
            ],
            steps=[self._step_out(step) for step in tutorial.steps],
        )

    @staticmethod
    def _step_out(step: Step) -> dict:
        return {
            "id": step.id,
            "step_number": step.step_number,
            "title": step.title,
            "instructions": step.instructions,
            "tips": step.tips,
            "image_urls": [img.image_url for img in step.images],
            "measurements": _models(step.measurements_json, MeasurementConversion, "measurements_json"),
            "helpful_links": _models(step.helpful_links_json, HelpfulLink, "helpful_links_json"),
            "skill_references": [
                {
                    "skill_name": s.skill_name,
                    "difficulty": s.difficulty,
                    "description": s.description,
                    "search_query": s.search_query,
                }
                for s in step.skill_references
            ],
            "safety_warnings": [
                {
                    "warning": w.warning,
                    "severity": w.severity,
                    "ppe_required": _strings(load_json(w.ppe_required_json, [], "ppe_required_json")),
                }
                for w in step.safety_warnings
            ],
        }

    def _delete(self, tutorial_id: str) -> None:
        # Step-level rows first: the engine's cascades do not reach them everywhere.
        step_ids = [row.id for row in self.db.query(Step.id).filter(Step.tutorial_id == tutorial_id)]
        if step_ids:
            for model in (StepImage, StepSkillReference, StepSafetyWarning):
                self.db.query(model).filter(model.step_id.in_(step_ids)).delete(synchronize_session=False)

        for model in (GlossaryTerm, Tool, Material, Step):
            self.db.query(model).filter(model.tutorial_id == tutorial_id).delete(synchronize_session=False)

        self.db.query(Tutorial).filter(Tutorial.id == tutorial_id).delete(synchronize_session=False)

    def add_to_checklist(self, tutorial_id: str) -> Optional[int]:
        """Copy materials and required tools into the checklist. ``None`` if the tutorial is missing."""
        if not self.exists(tutorial_id):
            return None

        materials = (
            self.db.query(Material)
            .filter(Material.tutorial_id == tutorial_id)
            .order_by(Material.sort_order)
            .all()
        )
        tools = (
            self.db.query(Tool)
            .filter(Tool.tutorial_id == tutorial_id, Tool.required == 1)
            .order_by(Tool.sort_order)
            .all()
        )

        for mat in materials:
            self.db.add(ChecklistItem(
                id=generate_uuid(),
                name=mat.name,
                quantity=mat.quantity,
                unit=mat.unit,
                notes=mat.notes,
                tutorial_id=tutorial_id,
                item_type="material",
            ))
        for tool in tools:
            self.db.add(ChecklistItem(
                id=generate_uuid(),
                name=tool.name,
                notes=tool.notes,
                tutorial_id=tutorial_id,
                item_type="tool",
            ))
        self._commit()
        return len(materials) + len(tools)


class RecipeStore(ContentStore):
    root = Recipe

    def _insert(self, content: RecipeContent, source_url: Optional[str]) -> str:
        recipe_id = generate_uuid()
        self.db.add(Recipe(
            id=recipe_id,
            title=content.title,
            description=content.description,
            image_url=content.image_url,
            author=content.author,
            author_url=content.author_url,
            prep_time=content.prep_time,
            cook_time=content.cook_time,
            total_time=content.total_time,
            servings=content.servings,
            source_url=source_url,
            tags_json=dump_json(content.tags),
            nutrition_json=dump_json(content.nutrition),
        ))

        for i, ing in enumerate(content.ingredients):
            self.db.add(Ingredient(
                id=generate_uuid(),
                recipe_id=recipe_id,
                name=ing.name,
                quantity=ing.quantity,
                unit=ing.unit,
                notes=ing.notes,
                measurement_json=dump_json(ing.measurement),
                sort_order=i,
            ))

        for i, inst in enumerate(content.instructions):
            self.db.add(Instruction(
                id=generate_uuid(),
                recipe_id=recipe_id,
                step_number=inst.step,
                instruction=inst.text,
                tips=inst.tips,
                image_urls_json=dump_json(inst.image_urls),
                measurements_json=dump_json(inst.measurements),
                sort_order=i,
            ))

        return recipe_id

    def load(self, recipe_id: str) -> Optional[RecipeOut]:
        recipe = (
            self.db.query(Recipe)
            .options(selectinload(Recipe.ingredients), selectinload(Recipe.instructions))
            .filter(Recipe.id == recipe_id)
            .first()
        )
        if not recipe:
            return None

        return RecipeOut(
            id=recipe.id,
            title=recipe.title,
            description=recipe.description,
            image_url=recipe.image_url,
            author=recipe.author,
            author_url=recipe.author_url,
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            total_time=recipe.total_time,
            servings=recipe.servings,
            source_url=recipe.source_url,
            tags=_strings(load_json(recipe.tags_json, [], "tags_json")),
            nutrition=_model(recipe.nutrition_json, Nutrition, "nutrition_json"),
            created_at=recipe.created_at,
            ingredients=[
                {
                    "id": ing.id,
                    "name": ing.name,
                    "quantity": ing.quantity,
                    "unit": ing.unit,
                    "notes": ing.notes,
                    "measurement": _model(ing.measurement_json, MeasurementConversion, "measurement_json"),
                }
                for ing in recipe.ingredients
            ],
            instructions=[
                {
                    "id": inst.id,
                    "step": inst.step_number,
                    "text": inst.instruction,
                    "tips": inst.tips,
                    "image_urls": _strings(load_json(inst.image_urls_json, [], "image_urls_json")),
                    "measurements": _models(inst.measurements_json, MeasurementConversion, "measurements_json"),
                }
                for inst in recipe.instructions
            ],
        )

    def _delete(self, recipe_id: str) -> None:
        for model in (Ingredient, Instruction):
            self.db.query(model).filter(model.recipe_id == recipe_id).delete(synchronize_session=False)
        self.db.query(Recipe).filter(Recipe.id == recipe_id).delete(synchronize_session=False)

    def add_to_shopping_list(self, recipe_id: str) -> Optional[int]:
        """Copy ingredients into the shopping list. ``None`` if the recipe is missing."""
        if not self.exists(recipe_id):
            return None

        ingredients = (
            self.db.query(Ingredient)
            .filter(Ingredient.recipe_id == recipe_id)
            .order_by(Ingredient.sort_order)
            .all()
        )
        for ing in ingredients:
            self.db.add(ShoppingListItem(
                id=generate_uuid(),
                ingredient_name=ing.name,
                quantity=ing.quantity,
                unit=ing.unit,
                notes=ing.notes,
                recipe_id=recipe_id,
            ))
        self._commit()
        return len(ingredients)
