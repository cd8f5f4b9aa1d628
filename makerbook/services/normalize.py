"""Descriptor-driven normalization of extracted content.

The extraction service returns whatever the crawler's LLM produced: keys may
be missing, null, mis-typed, or named slightly differently. ``normalize``
walks a tuple of ``Field`` descriptors and turns that payload into a plain
dict with every declared key present, which the content schema's pydantic
model then validates into a strict value.

Rules applied per field kind:

- TEXT: required string. Empty/missing -> ``placeholder`` (formatted with
  the item's 1-based position ``n``) or ``default``.
- OPTIONAL_TEXT: string or ``None``. Numbers are stringified.
- INTEGER: optional int; strings yield their first integer ("4 servings").
- POSITION: positive int; missing, falsy or unparseable -> ``n``.
- FLAG: bool; missing -> ``default``. "false"/"no"/"0"/0 are false.
- ENUM: non-empty string taken verbatim, else ``default``.
- TEXT_LIST: list of strings; a bare string becomes a one-item list.
- LIST: list of objects normalized with ``fields``; bare scalars land in
  ``scalar_key`` (defaults to the first sub-field).
- OBJECT: nested object normalized with ``fields``; absent -> ``None``.

Nothing here does I/O.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .content_schemas import ContentSchema

TEXT = "text"
OPTIONAL_TEXT = "optional_text"
INTEGER = "integer"
POSITION = "position"
FLAG = "flag"
ENUM = "enum"
TEXT_LIST = "text_list"
LIST = "list"
OBJECT = "object"

_FALSE_STRINGS = {"false", "no", "0", "off", "optional", "n"}
_INT_RE = re.compile(r"-?\d+")


@dataclass(frozen=True)
class Field:
    name: str
    kind: str = OPTIONAL_TEXT
    default: Any = None
    placeholder: Optional[str] = None
    aliases: tuple[str, ...] = ()
    fields: tuple["Field", ...] = ()
    scalar_key: Optional[str] = None
    sort_by: Optional[str] = None


def normalize(raw: Any, schema: "ContentSchema"):
    """Normalize a raw extraction payload into ``schema.model``."""
    return schema.model.model_validate(normalize_fields(unwrap(raw), schema.fields))


def unwrap(raw: Any) -> dict:
    """Accept a dict, a JSON string, a list of page documents, or a ``{"data": ...}`` envelope."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    if isinstance(raw, list):
        # Multi-page crawls can come back as one document per page
        return merge_documents([unwrap(item) for item in raw if isinstance(item, dict)])
    if not isinstance(raw, dict):
        return {}
    data = raw.get("data")
    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return unwrap(data)
    return raw


_PAGE_POSITION_KEYS = ("step_number", "step")


def merge_documents(documents: list[dict]) -> dict:
    """Fold per-page documents into one: lists concatenate, other values keep the first non-empty one.

    Each page numbers its steps from 1, so numbered items on later pages are
    shifted past the items already collected.
    """
    merged: dict = {}
    for doc in documents:
        for key, value in doc.items():
            current = merged.get(key)
            if isinstance(current, list) and isinstance(value, list):
                merged[key] = current + [_shift_position(item, len(current)) for item in value]
            elif current in (None, "", [], {}):
                merged[key] = value
    return merged


def _shift_position(item: Any, offset: int) -> Any:
    if not isinstance(item, dict) or not offset:
        return item
    for key in _PAGE_POSITION_KEYS:
        number = _as_int(item.get(key))
        if number and number > 0:
            return {**item, key: number + offset}
    return item


def normalize_fields(raw: Any, fields: tuple[Field, ...], position: int = 1) -> dict:
    if not isinstance(raw, dict):
        raw = {}
    out = {}
    for field in fields:
        out[field.name] = _normalize_value(_lookup(raw, field), field, position)
    return out


def _lookup(raw: dict, field: Field) -> Any:
    value = raw.get(field.name)
    if value is not None:
        return value
    for alias in field.aliases:
        value = raw.get(alias)
        if value is not None:
            return value
    return None


def _normalize_value(value: Any, field: Field, position: int) -> Any:
    kind = field.kind
    if kind == TEXT:
        text = _as_text(value)
        if text:
            return text
        if field.placeholder:
            return field.placeholder.format(n=position)
        return field.default if field.default is not None else ""
    if kind == OPTIONAL_TEXT:
        text = _as_text(value)
        return text if text is not None else field.default
    if kind == INTEGER:
        number = _as_int(value)
        return number if number is not None else field.default
    if kind == POSITION:
        number = _as_int(value)
        return number if number and number > 0 else position
    if kind == FLAG:
        return _as_flag(value, bool(field.default))
    if kind == ENUM:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return field.default
    if kind == TEXT_LIST:
        return [text for text in (_as_text(item) for item in _as_list(value)) if text is not None]
    if kind == LIST:
        return _normalize_list(value, field)
    if kind == OBJECT:
        if not isinstance(value, dict):
            return None
        return normalize_fields(value, field.fields, position)
    raise ValueError(f"Unknown field kind: {kind}")


def _normalize_list(value: Any, field: Field) -> list[dict]:
    scalar_key = field.scalar_key or field.fields[0].name
    items = []
    for item in _as_list(value):
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            item = {scalar_key: item}
        if not isinstance(item, dict):
            continue
        items.append(item)

    normalized = [
        normalize_fields(item, field.fields, position=idx + 1)
        for idx, item in enumerate(items)
    ]
    if field.sort_by:
        # sorted() is stable: equal keys keep source order
        normalized = sorted(normalized, key=lambda entry: entry[field.sort_by])
    return normalized


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return [value]


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _INT_RE.search(value)
        if match:
            return int(match.group())
    return None


def _as_flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return default
        return text not in _FALSE_STRINGS
    return default
