"""Prompt loading and rendering helpers for classifier providers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from ..core.types import Item


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def build_classification_prompt(item: Item, max_excerpt_chars: int = 800) -> str:
    return _render_template(
        "classify",
        title=_quote(item.title),
        source=_quote(item.source),
        excerpt=_quote(item.excerpt[:max_excerpt_chars]),
    )


def _quote(value: str) -> str:
    return value.replace('"', "'")
