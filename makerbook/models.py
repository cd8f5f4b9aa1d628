"""SQLAlchemy ORM models for makerbook.

Tables:
- tutorials: DIY tutorial with glossary, materials, tools and steps
- steps: Ordered tutorial steps (step_images, step_skill_references,
  step_safety_warnings hang off each step)
- recipes: Recipe with ingredients and instructions
- materials_checklist / shopping_list: Flat snapshot lists copied out of a
  tutorial or recipe (no foreign key, they outlive their source)

Booleans are stored as 0/1 integers and nested values as JSON text in
``*_json`` columns.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Tutorials ---

class Tutorial(Base):
    """DIY tutorial aggregate root."""
    __tablename__ = "tutorials"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    overview: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    # Relationships
    glossary: Mapped[list["GlossaryTerm"]] = relationship(
        "GlossaryTerm", back_populates="tutorial", cascade="all, delete-orphan",
        order_by="GlossaryTerm.sort_order", passive_deletes=True
    )
    materials: Mapped[list["Material"]] = relationship(
        "Material", back_populates="tutorial", cascade="all, delete-orphan",
        order_by="Material.sort_order", passive_deletes=True
    )
    tools: Mapped[list["Tool"]] = relationship(
        "Tool", back_populates="tutorial", cascade="all, delete-orphan",
        order_by="Tool.sort_order", passive_deletes=True
    )
    steps: Mapped[list["Step"]] = relationship(
        "Step", back_populates="tutorial", cascade="all, delete-orphan",
        order_by="[Step.step_number, Step.sort_order]", passive_deletes=True
    )


class GlossaryTerm(Base):
    __tablename__ = "glossary"
    __table_args__ = (
        Index("ix_glossary_tutorial_id", "tutorial_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tutorial_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False
    )
    term: Mapped[str] = mapped_column(Text, nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False, default="")
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tutorial: Mapped["Tutorial"] = relationship("Tutorial", back_populates="glossary")


class Material(Base):
    __tablename__ = "materials"
    __table_args__ = (
        Index("ix_materials_tutorial_id", "tutorial_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tutorial_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    purchase_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    measurement_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tutorial: Mapped["Tutorial"] = relationship("Tutorial", back_populates="materials")


class Tool(Base):
    __tablename__ = "tools"
    __table_args__ = (
        Index("ix_tools_tutorial_id", "tutorial_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tutorial_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    required: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # 0/1
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tutorial: Mapped["Tutorial"] = relationship("Tutorial", back_populates="tools")


class Step(Base):
    """Ordered tutorial step. ``step_number`` is the sort key, ``sort_order`` breaks ties."""
    __tablename__ = "steps"
    __table_args__ = (
        Index("ix_steps_tutorial_id", "tutorial_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tutorial_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tips: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    measurements_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    helpful_links_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tutorial: Mapped["Tutorial"] = relationship("Tutorial", back_populates="steps")
    images: Mapped[list["StepImage"]] = relationship(
        "StepImage", back_populates="step", cascade="all, delete-orphan",
        order_by="StepImage.sort_order", passive_deletes=True
    )
    skill_references: Mapped[list["StepSkillReference"]] = relationship(
        "StepSkillReference", back_populates="step", cascade="all, delete-orphan",
        order_by="StepSkillReference.sort_order", passive_deletes=True
    )
    safety_warnings: Mapped[list["StepSafetyWarning"]] = relationship(
        "StepSafetyWarning", back_populates="step", cascade="all, delete-orphan",
        order_by="StepSafetyWarning.sort_order", passive_deletes=True
    )


class StepImage(Base):
    __tablename__ = "step_images"
    __table_args__ = (
        Index("ix_step_images_step_id", "step_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    step_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("steps.id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    step: Mapped["Step"] = relationship("Step", back_populates="images")


class StepSkillReference(Base):
    __tablename__ = "step_skill_references"
    __table_args__ = (
        Index("ix_step_skill_references_step_id", "step_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    step_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("steps.id", ondelete="CASCADE"), nullable=False
    )
    skill_name: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(Text, nullable=False, default="beginner")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    search_query: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    step: Mapped["Step"] = relationship("Step", back_populates="skill_references")


class StepSafetyWarning(Base):
    __tablename__ = "step_safety_warnings"
    __table_args__ = (
        Index("ix_step_safety_warnings_step_id", "step_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    step_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("steps.id", ondelete="CASCADE"), nullable=False
    )
    warning: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(Text, nullable=False, default="caution")
    ppe_required_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    step: Mapped["Step"] = relationship("Step", back_populates="safety_warnings")


class ChecklistItem(Base):
    """Materials & tools checklist entry (snapshot, no FK to tutorials)."""
    __tablename__ = "materials_checklist"
    __table_args__ = (
        Index("ix_materials_checklist_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    checked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0/1
    tutorial_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    item_type: Mapped[str] = mapped_column(Text, nullable=False, default="material")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


# --- Recipes ---

class Recipe(Base):
    """Recipe aggregate root."""
    __tablename__ = "recipes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prep_time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cook_time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    nutrition_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    ingredients: Mapped[list["Ingredient"]] = relationship(
        "Ingredient", back_populates="recipe", cascade="all, delete-orphan",
        order_by="Ingredient.sort_order", passive_deletes=True
    )
    instructions: Mapped[list["Instruction"]] = relationship(
        "Instruction", back_populates="recipe", cascade="all, delete-orphan",
        order_by="[Instruction.step_number, Instruction.sort_order]", passive_deletes=True
    )


class Ingredient(Base):
    __tablename__ = "ingredients"
    __table_args__ = (
        Index("ix_ingredients_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    measurement_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ingredients")


class Instruction(Base):
    """Ordered recipe instruction. ``step_number`` is the sort key, ``sort_order`` breaks ties."""
    __tablename__ = "instructions"
    __table_args__ = (
        Index("ix_instructions_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    instruction: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tips: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_urls_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    measurements_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="instructions")


class ShoppingListItem(Base):
    """Shopping list entry (snapshot, no FK to recipes)."""
    __tablename__ = "shopping_list"
    __table_args__ = (
        Index("ix_shopping_list_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    ingredient_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    checked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0/1
    recipe_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
