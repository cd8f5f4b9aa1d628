"""Render one stored aggregate as seed SQL.

The output is a series of ``INSERT OR REPLACE`` statements, one per table,
covering every column of every row in the aggregate. Rows are emitted in
their stored order, so exporting the same aggregate twice yields identical
text.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import (
    GlossaryTerm,
    Ingredient,
    Instruction,
    Material,
    Recipe,
    Step,
    StepImage,
    StepSafetyWarning,
    StepSkillReference,
    Tool,
    Tutorial,
)


def escape_sql(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, datetime):
        value = value.isoformat(sep=" ")
    text = str(value).replace("'", "''")
    return f"'{text}'"


def _insert(model, label: str, rows: list) -> list[str]:
    if not rows:
        return []
    columns = [column.name for column in model.__table__.columns]
    lines = [
        f"-- {label}",
        f"INSERT OR REPLACE INTO {model.__tablename__} ({', '.join(columns)}) VALUES",
    ]
    for idx, row in enumerate(rows):
        values = ", ".join(escape_sql(getattr(row, name)) for name in columns)
        end = "," if idx < len(rows) - 1 else ";"
        lines.append(f"  ({values}){end}")
    lines.append("")
    return lines


def _header(app: str, kind: str, title: str) -> list[str]:
    return [f"-- Seed data for {app}", f"-- {kind}: {title}", ""]


def _children(db: Session, model, parent_col, parent_ids: Iterable[str], *order) -> list:
    ids = list(parent_ids)
    if not ids:
        return []
    stmt = select(model).where(parent_col.in_(ids)).order_by(*order, model.id)
    return list(db.scalars(stmt).all())


def export_tutorial_seed(db: Session, tutorial_id: str) -> Optional[str]:
    tutorial = db.get(Tutorial, tutorial_id)
    if not tutorial:
        return None

    ids = [tutorial.id]
    glossary = _children(db, GlossaryTerm, GlossaryTerm.tutorial_id, ids, GlossaryTerm.sort_order)
    materials = _children(db, Material, Material.tutorial_id, ids, Material.sort_order)
    tools = _children(db, Tool, Tool.tutorial_id, ids, Tool.sort_order)
    steps = _children(db, Step, Step.tutorial_id, ids, Step.step_number, Step.sort_order)

    step_ids = [step.id for step in steps]
    images = _children(db, StepImage, StepImage.step_id, step_ids, StepImage.step_id, StepImage.sort_order)
    skills = _children(
        db, StepSkillReference, StepSkillReference.step_id, step_ids,
        StepSkillReference.step_id, StepSkillReference.sort_order,
    )
    warnings = _children(
        db, StepSafetyWarning, StepSafetyWarning.step_id, step_ids,
        StepSafetyWarning.step_id, StepSafetyWarning.sort_order,
    )

    lines = _header("makerbook tutorials", "Tutorial", tutorial.title)
    lines += _insert(Tutorial, "Tutorial", [tutorial])
    lines += _insert(GlossaryTerm, "Glossary", glossary)
    lines += _insert(Material, "Materials", materials)
    lines += _insert(Tool, "Tools", tools)
    lines += _insert(Step, "Steps", steps)
    lines += _insert(StepImage, "Step images", images)
    lines += _insert(StepSkillReference, "Step skill references", skills)
    lines += _insert(StepSafetyWarning, "Step safety warnings", warnings)
    return "\n".join(lines)


def export_recipe_seed(db: Session, recipe_id: str) -> Optional[str]:
    recipe = db.get(Recipe, recipe_id)
    if not recipe:
        return None

    ids = [recipe.id]
    ingredients = _children(db, Ingredient, Ingredient.recipe_id, ids, Ingredient.sort_order)
    instructions = _children(
        db, Instruction, Instruction.recipe_id, ids, Instruction.step_number, Instruction.sort_order,
    )

    lines = _header("makerbook recipes", "Recipe", recipe.title)
    lines += _insert(Recipe, "Recipe", [recipe])
    lines += _insert(Ingredient, "Ingredients", ingredients)
    lines += _insert(Instruction, "Instructions", instructions)
    return "\n".join(lines)


EXPORTERS = {
    "tutorial": export_tutorial_seed,
    "recipe": export_recipe_seed,
}
