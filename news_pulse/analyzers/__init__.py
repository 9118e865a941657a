"""Classification: keyword heuristics and the batching orchestrator."""

from .classifier import ClassificationOrchestrator
from .heuristics import HeuristicResult, apply_boosts, fallback_enrichment, heuristic_classify

__all__ = [
    "ClassificationOrchestrator",
    "HeuristicResult",
    "apply_boosts",
    "fallback_enrichment",
    "heuristic_classify",
]
