"""
Keyword heuristics for category and priority.

One function, ``heuristic_classify``, serves two callers: the orchestrator
uses it to replace invalid values in classifier output, and
``fallback_enrichment`` uses it when the classifier cannot be reached.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.taxonomy import Taxonomy, contains, matching, mentions
from ..core.types import CATEGORIES, MAX_TAGS, Item
from ..fetch.text import truncate


_LAUNCH_TERMS = ("launch", "introducing", "announce", "new")
_MODEL_LAUNCH_TERMS = ("launch", "release", "introducing", "announce")
_BREAKING_CATEGORIES = ("model_launch", "ide_launch", "ide_update")
_HIGH_CATEGORIES = ("ide_update", "ide_launch", "agent")
LAUNCH_CATEGORIES = ("model_launch", "ide_launch")


@dataclass(frozen=True)
class HeuristicResult:
    category: str
    priority: str


def heuristic_classify(item: Item, taxonomy: Taxonomy, category: str | None = None) -> HeuristicResult:
    """Classify an item from its title and excerpt.

    Args:
        item: Item to classify
        taxonomy: Keyword vocabularies
        category: Known category; when given only the priority is derived

    Returns:
        HeuristicResult with a valid category and priority
    """
    text = item.text
    if category is None:
        category = _detect_category(item, text, taxonomy)
    return HeuristicResult(category=category, priority=_detect_priority(text, category, taxonomy))


def apply_boosts(item: Item, category: str, priority: str, taxonomy: Taxonomy) -> str:
    """Return the priority after deterministic boosts.

    Official sources publishing a launch are always breaking; a known tool
    mention lifts normal priority to high.
    """
    if item.tier == "official" and category in LAUNCH_CATEGORIES:
        return "breaking"
    if priority == "normal" and mentions(item.text, taxonomy.known_tools):
        return "high"
    return priority


def fallback_enrichment(item: Item, taxonomy: Taxonomy) -> dict:
    """Full enrichment used when the classifier is unavailable."""
    result = heuristic_classify(item, taxonomy)
    text = item.text
    return {
        "category": result.category,
        "priority": apply_boosts(item, result.category, result.priority, taxonomy),
        "summary": fallback_summary(item),
        "tags": basic_tags(text, taxonomy),
        "related_models": matching(text, taxonomy.known_models)[:3],
        "related_companies": matching(text, taxonomy.known_companies)[:3],
        "relevance": 5,
        "sentiment": "neutral",
        "actionable": False,
        "impact": "",
        "classified_by": "heuristic",
    }


def fallback_summary(item: Item) -> str:
    return truncate(item.excerpt or item.title, 150)


def basic_tags(text: str, taxonomy: Taxonomy) -> list[str]:
    tags = [tag for tag, terms in taxonomy.tag_rules.items() if mentions(text, terms)]
    return tags[:MAX_TAGS]


def _detect_category(item: Item, text: str, taxonomy: Taxonomy) -> str:
    if mentions(text, taxonomy.known_tools):
        return "ide_launch" if mentions(text, _LAUNCH_TERMS) else "ide_update"
    if mentions(text, taxonomy.frameworks):
        return "agent"
    if mentions(text, taxonomy.known_models) and mentions(text, _MODEL_LAUNCH_TERMS):
        return "model_launch"
    if contains(text, "video") and mentions(text, ("generation", "sora", "runway")):
        return "video_ai"
    if mentions(text, ("image", "diffusion")) and contains(text, "generat"):
        return "image_ai"
    if mentions(text, ("api", "endpoint", "sdk")):
        return "api"
    if mentions(text, ("paper", "arxiv", "benchmark")):
        return "research"
    if mentions(text, ("how to", "tutorial", "guide", "building")):
        return "tutorial"
    if mentions(text, ("funding", "acquisition", "million", "billion")):
        return "market"
    if item.source_category in CATEGORIES:
        return item.source_category
    return "feature"


def _detect_priority(text: str, category: str, taxonomy: Taxonomy) -> str:
    if category in _BREAKING_CATEGORIES and mentions(text, taxonomy.breaking_keywords):
        return "breaking"
    if category in _HIGH_CATEGORIES:
        return "high"
    if mentions(text, taxonomy.known_tools):
        return "high"
    if mentions(text, taxonomy.opinion_terms):
        return "low"
    return "normal"
