"""
Content catalog import.

Items are read from a YAML list such as:

    - word: hola
      translation: hello
      category: conversation
    - id: es-gracias
      word: gracias
      translation: thank you
"""

import logging
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from cadence.domain.errors import InvalidInput
from cadence.domain.models import Item

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _SLUG_RE.sub("-", text.strip().lower()).strip("-")


class ItemSpec(BaseModel):
    id: str | None = None
    word: str
    translation: str
    phonetic: str | None = None
    example_sentence: str | None = None
    example_translation: str | None = None
    category: str | None = None
    difficulty: str | None = None
    target_language: str | None = None
    native_language: str | None = None

    @field_validator("word", "translation")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    def to_item(self) -> Item:
        data = self.model_dump()
        data["id"] = self.id or slugify(self.word) or self.word
        return Item(**data)


def parse_items(text: str) -> list[Item]:
    """Parse a YAML document into Items. Raises InvalidInput on bad content."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidInput(f"Invalid YAML: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict) and "items" in data:
        data = data["items"]
    if not isinstance(data, list):
        raise InvalidInput("Expected a list of items")

    items: list[Item] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise InvalidInput(f"Item #{index} is not a mapping")
        try:
            items.append(ItemSpec(**entry).to_item())
        except ValidationError as e:
            raise InvalidInput(f"Item #{index}: {e.errors()[0]['msg']}") from e
    return items


def load_items(path: Path) -> list[Item]:
    items = parse_items(path.read_text(encoding="utf-8"))
    logger.info(f"Loaded {len(items)} items from {path}")
    return items
