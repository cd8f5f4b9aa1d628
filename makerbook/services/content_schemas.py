"""Extraction schemas for the two content kinds.

A ``ContentSchema`` bundles everything that differs between tutorials and
recipes:

- the YAML prompt sent to the extraction service (``extraction_schemas/*.yaml``,
  read once per process),
- the field descriptors the normalizer walks,
- the strict pydantic model the normalized dict is validated into.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Type

from pydantic import BaseModel

from ..schemas import RecipeContent, TutorialContent
from .normalize import (
    Field,
    ENUM,
    FLAG,
    INTEGER,
    LIST,
    OBJECT,
    OPTIONAL_TEXT,
    POSITION,
    TEXT,
    TEXT_LIST,
)

SCHEMA_DIR = Path(__file__).resolve().parents[1] / "extraction_schemas"
KINDS = ("tutorial", "recipe")

_VERSION_RE = re.compile(r"^version:\s*(\S+)\s*$", re.MULTILINE)
_NAME_RE = re.compile(r"^name:\s*(\S+)\s*$", re.MULTILINE)


@dataclass(frozen=True)
class ContentSchema:
    kind: str
    name: str
    version: str
    prompt: str
    fields: tuple[Field, ...]
    model: Type[BaseModel]


# --- Shared descriptors ---

MEASUREMENT = (
    Field("original", TEXT),
    Field("metric", TEXT),
    Field("imperial", TEXT),
)

HELPFUL_LINK = (
    Field("title", TEXT, placeholder="Helpful Resource"),
    Field("url", TEXT),
    Field("type", ENUM, default="reference"),
)

SKILL_REFERENCE = (
    Field("skill_name", TEXT, placeholder="Skill {n}", aliases=("name", "skill")),
    Field("difficulty", ENUM, default="beginner"),
    Field("description", TEXT),
    Field("search_query", TEXT),
)

SAFETY_WARNING = (
    Field("warning", TEXT, aliases=("text", "message")),
    Field("severity", ENUM, default="caution"),
    Field("ppe_required", TEXT_LIST, aliases=("ppe",)),
)


TUTORIAL_FIELDS = (
    Field("title", TEXT, placeholder="Untitled Tutorial"),
    Field("overview", TEXT, aliases=("description", "summary")),
    Field("image_url", OPTIONAL_TEXT),
    Field("author", OPTIONAL_TEXT),
    Field("author_url", OPTIONAL_TEXT),
    Field("difficulty", OPTIONAL_TEXT),
    Field("estimated_time", OPTIONAL_TEXT),
    Field("tags", TEXT_LIST),
    Field("glossary", LIST, aliases=("glossary_terms",), fields=(
        Field("term", TEXT, placeholder="Term {n}"),
        Field("definition", TEXT),
        Field("context", OPTIONAL_TEXT),
    )),
    Field("materials", LIST, aliases=("materials_and_tools", "supplies"), fields=(
        Field("name", TEXT, placeholder="Item {n}", aliases=("item",)),
        Field("quantity", OPTIONAL_TEXT),
        Field("unit", OPTIONAL_TEXT),
        Field("notes", OPTIONAL_TEXT),
        Field("purchase_url", OPTIONAL_TEXT),
        Field("measurement", OBJECT, fields=MEASUREMENT),
    )),
    Field("tools", LIST, fields=(
        Field("name", TEXT, placeholder="Tool {n}", aliases=("item",)),
        Field("notes", OPTIONAL_TEXT),
        Field("required", FLAG, default=True),
    )),
    Field("steps", LIST, sort_by="step_number", scalar_key="instructions", fields=(
        Field("step_number", POSITION),
        Field("title", TEXT, placeholder="Step {n}"),
        Field("instructions", TEXT, aliases=("text", "instruction")),
        Field("tips", OPTIONAL_TEXT),
        Field("image_urls", TEXT_LIST, aliases=("images",)),
        Field("measurements", LIST, fields=MEASUREMENT),
        Field("helpful_links", LIST, fields=HELPFUL_LINK),
        Field("skill_references", LIST, fields=SKILL_REFERENCE),
        Field("safety_warnings", LIST, fields=SAFETY_WARNING),
    )),
)

RECIPE_FIELDS = (
    Field("title", TEXT, placeholder="Untitled Recipe"),
    Field("description", OPTIONAL_TEXT),
    Field("image_url", OPTIONAL_TEXT),
    Field("author", OPTIONAL_TEXT),
    Field("author_url", OPTIONAL_TEXT),
    Field("prep_time", OPTIONAL_TEXT),
    Field("cook_time", OPTIONAL_TEXT),
    Field("total_time", OPTIONAL_TEXT),
    Field("servings", INTEGER, aliases=("yield",)),
    Field("tags", TEXT_LIST),
    Field("nutrition", OBJECT, fields=(
        Field("calories", OPTIONAL_TEXT),
        Field("protein", OPTIONAL_TEXT),
        Field("carbs", OPTIONAL_TEXT),
        Field("fat", OPTIONAL_TEXT),
    )),
    Field("ingredients", LIST, fields=(
        Field("name", TEXT, placeholder="Ingredient {n}", aliases=("item", "ingredient")),
        Field("quantity", OPTIONAL_TEXT, aliases=("amount",)),
        Field("unit", OPTIONAL_TEXT),
        Field("notes", OPTIONAL_TEXT),
        Field("measurement", OBJECT, fields=MEASUREMENT),
    )),
    Field("instructions", LIST, aliases=("steps",), sort_by="step", scalar_key="text", fields=(
        Field("step", POSITION, aliases=("step_number",)),
        Field("text", TEXT, aliases=("instruction", "instructions")),
        Field("tips", OPTIONAL_TEXT),
        Field("image_urls", TEXT_LIST, aliases=("images",)),
        Field("measurements", LIST, fields=MEASUREMENT),
    )),
)

_FIELDS = {"tutorial": TUTORIAL_FIELDS, "recipe": RECIPE_FIELDS}
_MODELS = {"tutorial": TutorialContent, "recipe": RecipeContent}


@lru_cache(maxsize=None)
def get_schema(kind: str) -> ContentSchema:
    """Load the schema for ``kind`` (tutorial | recipe) once per process."""
    if kind not in KINDS:
        raise ValueError(f"Unknown content kind: {kind!r}")

    prompt = (SCHEMA_DIR / f"{kind}.yaml").read_text(encoding="utf-8")
    version = _VERSION_RE.search(prompt)
    name = _NAME_RE.search(prompt)
    return ContentSchema(
        kind=kind,
        name=name.group(1) if name else kind,
        version=version.group(1) if version else "1",
        prompt=prompt,
        fields=_FIELDS[kind],
        model=_MODELS[kind],
    )
