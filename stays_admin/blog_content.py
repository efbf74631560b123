import json
import math
import re
from typing import Iterable, List

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from .errors import ValidationError
from .schemas import ContentBlock

WORDS_PER_MINUTE = 200

_content_adapter = TypeAdapter(List[ContentBlock])
_tags_adapter = TypeAdapter(List[str])


def generate_slug(title: str) -> str:
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def _decode(raw, adapter: TypeAdapter, what: str) -> list:
    try:
        value = json.loads(raw) if isinstance(raw, str) else raw
        return adapter.validate_python(value)
    except (json.JSONDecodeError, SchemaError) as e:
        raise ValidationError(f"Invalid JSON format for {what}", detail=str(e))


def parse_content(raw) -> list[dict]:
    """Decode the multipart `content` field into typed blocks, returned as plain dicts for the JSON column."""
    blocks = _decode(raw, _content_adapter, "content")
    return [b.model_dump(exclude_none=True) for b in blocks]


def parse_tags(raw) -> list[str]:
    if raw is None or raw == "":
        return []
    return _decode(raw, _tags_adapter, "tags")


def _words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def count_words(content: Iterable[dict]) -> int:
    total = 0
    for block in content or []:
        kind = block.get("type")
        if kind in ("paragraph", "heading"):
            total += _words(block.get("text"))
        elif kind == "list":
            total += sum(_words(item) for item in block.get("items") or [])
    return total


def calculate_read_time(content: Iterable[dict]) -> str:
    minutes = math.ceil(count_words(content) / WORDS_PER_MINUTE)
    return f"{minutes} min read"
