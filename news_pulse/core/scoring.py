"""
Noise filtering, relevance scoring and ranking of aggregated items.

Scores are additive: a tier bonus (official highest) plus keyword bonuses
for flagship models, tools, frameworks and announcement language, minus
penalties for maintenance language. Weights come from the taxonomy.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from .taxonomy import Taxonomy, mentions
from .types import TIERS, Item


_VERSION_RE = re.compile(r"\bv?\d+\.\d+\.\d+\b")
_MAJOR_VERSION_RE = re.compile(r"\bv?\d+\.0\.0\b")
_BUILD_NUMBER_RE = re.compile(r"^[a-z\s\-]+\s*b\d{4,}", re.IGNORECASE)
_HASH_RANGE_RE = re.compile(r"^[a-z\s\-]+\s*[a-f0-9]{7,}\s*-?\s*[a-f0-9]{7,}$", re.IGNORECASE)
_BARE_HASH_RE = re.compile(r"^[a-f0-9]{7,40}$", re.IGNORECASE)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_noise(item: Item, taxonomy: Taxonomy, min_title_length: int = 15) -> bool:
    """Return True for low-value items that should not reach scoring.

    Drops minor version bumps without a release signal, build-number and
    VCS-hash titles, maintenance commit phrasing, very short titles and
    items without a link.
    """
    title = item.title.strip().lower()
    full_text = item.text

    if not item.link or not item.link.strip():
        return True
    if len(title) < min_title_length:
        return True

    if _VERSION_RE.search(title) and not _MAJOR_VERSION_RE.search(title):
        if not mentions(full_text, taxonomy.release_signal_terms):
            return True

    if _BUILD_NUMBER_RE.search(title) or _HASH_RANGE_RE.search(title) or _BARE_HASH_RE.search(title):
        return True

    return mentions(title, taxonomy.maintenance_patterns)


def score_item(item: Item, taxonomy: Taxonomy) -> float:
    """Compute the aggregator relevance score of an item."""
    text = item.text
    source = item.source.lower()
    score = (len(TIERS) - 1 - item.tier_rank) * taxonomy.weight("tier_step")

    if any(vendor in source for vendor in taxonomy.official_vendors):
        score += taxonomy.weight("official_vendor")
    if mentions(text, taxonomy.flagship_models):
        score += taxonomy.weight("flagship_model")
    if mentions(text, taxonomy.tool_keywords):
        score += taxonomy.weight("tool")
    if mentions(text, taxonomy.framework_keywords):
        score += taxonomy.weight("framework")
    if mentions(text, taxonomy.announcement_terms):
        score += taxonomy.weight("announcement")
    if mentions(text, taxonomy.prompt_terms):
        score += taxonomy.weight("prompt_engineering")
    if mentions(text, taxonomy.ai_engineering_terms):
        score += taxonomy.weight("ai_engineering")

    if mentions(text, taxonomy.bug_fix_terms):
        score += taxonomy.weight("bug_fix_penalty")
    if "minor" in text and "minor feature" not in text:
        score += taxonomy.weight("minor_penalty")

    return score


def rank_key(item: Item) -> tuple:
    """Sort key: score desc, tier rank asc, recency desc, id asc.

    The trailing keys make the order total, so ranking does not depend on
    the order in which sources returned their items.
    """
    published = item.published or _EPOCH
    return (-item.score, item.tier_rank, -published.timestamp(), item.id)


def rank_items(items: list[Item], taxonomy: Taxonomy) -> list[Item]:
    """Score and sort items, best first."""
    scored = [item.with_score(score_item(item, taxonomy)) for item in items]
    return sorted(scored, key=rank_key)
