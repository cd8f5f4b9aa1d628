"""Pydantic schemas for makerbook.

Two families:
- *Content models (TutorialContent, RecipeContent and their children) are the
  strict normalized shape produced by ``services.normalize``. Extraction
  results, manual input and stored aggregates all pass through them.
- *Out / *Create models are the API request/response bodies.
"""

from datetime import datetime
from typing import Any, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field


# --- Shared nested values ---

class MeasurementConversion(BaseModel):
    original: str = ""
    metric: str = ""
    imperial: str = ""


class HelpfulLink(BaseModel):
    title: str = "Helpful Resource"
    url: str = ""
    type: str = "reference"  # tutorial | video | product | reference


class SkillReference(BaseModel):
    skill_name: str
    difficulty: str = "beginner"  # beginner | intermediate | advanced
    description: str = ""
    search_query: str = ""


class SafetyWarning(BaseModel):
    warning: str
    severity: str = "caution"  # caution | warning | danger
    ppe_required: list[str] = []


# --- Tutorial content ---

class GlossaryEntry(BaseModel):
    term: str
    definition: str = ""
    context: Optional[str] = None


class TutorialMaterial(BaseModel):
    name: str
    quantity: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    purchase_url: Optional[str] = None
    measurement: Optional[MeasurementConversion] = None


class TutorialTool(BaseModel):
    name: str
    notes: Optional[str] = None
    required: bool = True


class TutorialStep(BaseModel):
    step_number: int = Field(..., ge=1)
    title: str
    instructions: str = ""
    tips: Optional[str] = None
    image_urls: list[str] = []
    measurements: list[MeasurementConversion] = []
    helpful_links: list[HelpfulLink] = []
    skill_references: list[SkillReference] = []
    safety_warnings: list[SafetyWarning] = []


class TutorialContent(BaseModel):
    title: str = Field(..., min_length=1)
    overview: str = ""
    image_url: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    difficulty: Optional[str] = None
    estimated_time: Optional[str] = None
    tags: list[str] = []
    glossary: list[GlossaryEntry] = []
    materials: list[TutorialMaterial] = []
    tools: list[TutorialTool] = []
    steps: list[TutorialStep] = []


# --- Recipe content ---

class Nutrition(BaseModel):
    calories: Optional[str] = None
    protein: Optional[str] = None
    carbs: Optional[str] = None
    fat: Optional[str] = None


class RecipeIngredient(BaseModel):
    name: str
    quantity: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    measurement: Optional[MeasurementConversion] = None


class RecipeInstruction(BaseModel):
    step: int = Field(..., ge=1)
    text: str = ""
    tips: Optional[str] = None
    image_urls: list[str] = []
    measurements: list[MeasurementConversion] = []


class RecipeContent(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    total_time: Optional[str] = None
    servings: Optional[int] = None
    tags: list[str] = []
    nutrition: Optional[Nutrition] = None
    ingredients: list[RecipeIngredient] = []
    instructions: list[RecipeInstruction] = []


# --- Stored aggregates ---

class GlossaryEntryOut(GlossaryEntry):
    id: str


class TutorialMaterialOut(TutorialMaterial):
    id: str


class TutorialToolOut(TutorialTool):
    id: str


class TutorialStepOut(TutorialStep):
    id: str


class TutorialOut(TutorialContent):
    id: str
    source_url: Optional[str] = None
    created_at: datetime
    glossary: list[GlossaryEntryOut] = []
    materials: list[TutorialMaterialOut] = []
    tools: list[TutorialToolOut] = []
    steps: list[TutorialStepOut] = []


class TutorialListOut(BaseModel):
    id: str
    title: str
    overview: Optional[str]
    image_url: Optional[str]
    difficulty: Optional[str]
    estimated_time: Optional[str]
    source_url: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecipeIngredientOut(RecipeIngredient):
    id: str


class RecipeInstructionOut(RecipeInstruction):
    id: str


class RecipeOut(RecipeContent):
    id: str
    source_url: Optional[str] = None
    created_at: datetime
    ingredients: list[RecipeIngredientOut] = []
    instructions: list[RecipeInstructionOut] = []


class RecipeListOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    image_url: Optional[str]
    total_time: Optional[str]
    servings: Optional[int]
    source_url: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreatedOut(BaseModel):
    id: str


class AddedToListOut(BaseModel):
    added: int


# --- Checklist / shopping list ---

class ChecklistItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    quantity: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    tutorial_id: Optional[str] = None
    item_type: Literal["material", "tool"] = "material"


class ChecklistItemOut(BaseModel):
    id: str
    name: str
    quantity: Optional[str]
    unit: Optional[str]
    notes: Optional[str]
    checked: bool
    tutorial_id: Optional[str]
    item_type: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ShoppingListItemCreate(BaseModel):
    ingredient_name: str = Field(..., min_length=1, max_length=500)
    quantity: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    recipe_id: Optional[str] = None


class ShoppingListItemOut(BaseModel):
    id: str
    ingredient_name: str
    quantity: Optional[str]
    unit: Optional[str]
    notes: Optional[str]
    checked: bool
    recipe_id: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Extraction API ---

ContentKind = Literal["tutorial", "recipe"]


class ExtractRequest(BaseModel):
    url: Optional[str] = None  # Checked by hand so a missing URL is a 400, not a 422
    kind: Optional[ContentKind] = None
    wait: bool = False  # Block on the synchronous extract endpoint instead of starting a job


class ExtractResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    job_id: Optional[str] = Field(None, alias="jobId")
    status: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class PollResponse(BaseModel):
    success: bool
    status: Optional[str] = None
    progress: Optional[float] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
