"""Keyword taxonomy used by scoring, source filtering and the heuristic classifier.

The lists and weights here are tuning data, not control flow. Every field
can be overridden from the ``keywords`` section of the YAML config; a list
given there replaces the default list, a ``weights`` mapping is merged into
the default weights.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
import logging
import re
from typing import Any, Iterable

logger = logging.getLogger(__name__)


DEFAULT_WEIGHTS: dict[str, float] = {
    "tier_step": 20,
    "official_vendor": 50,
    "flagship_model": 40,
    "tool": 30,
    "framework": 25,
    "announcement": 20,
    "prompt_engineering": 25,
    "ai_engineering": 20,
    "bug_fix_penalty": -30,
    "minor_penalty": -20,
}


@dataclass
class Taxonomy:
    """Curated vocabularies.

    Attributes:
        known_models: Model names used by the heuristic and related-model extraction
        known_tools: AI coding tools and IDEs; mentions upgrade priority
        frameworks: Agent/RAG/inference frameworks
        known_companies: Companies used for related-company extraction
        official_vendors: Source names that earn the official vendor bonus
        flagship_models: Scoring keywords for flagship model news
        tool_keywords: Scoring keywords for tool news
        framework_keywords: Scoring keywords for framework news
        announcement_terms: Launch/announce language
        prompt_terms: Prompt engineering language
        ai_engineering_terms: AI engineering language
        bug_fix_terms: Maintenance language that is penalized
        release_signal_terms: Terms that rescue a version-bump title from the noise filter
        maintenance_patterns: Title fragments that mark maintenance commits
        breaking_keywords: Heuristic breaking-priority triggers
        opinion_terms: Heuristic low-priority triggers
        ai_keywords: Relevance filter for aggregator feeds
        hn_keywords: Relevance filter for Hacker News stories
        hn_negative_keywords: Hacker News stories to skip
        product_keywords: Relevance filter for Product Hunt launches
        tag_rules: Tag name -> substrings that imply it
        weights: Scoring weights (see DEFAULT_WEIGHTS)
    """

    known_models: list[str] = field(
        default_factory=lambda: [
            "GPT-4", "GPT-4o", "GPT-4.5", "GPT-5", "o1", "o3", "o1-pro",
            "Claude", "Claude 3", "Claude 3.5", "Claude 4", "Sonnet", "Opus", "Haiku",
            "Gemini", "Gemini 2", "Gemini Pro", "Gemini Ultra", "Gemma",
            "Llama", "Llama 3", "Llama 4", "CodeLlama",
            "Mistral", "Mixtral", "Codestral", "Pixtral",
            "Qwen", "DeepSeek", "DeepSeek-V3", "Phi-4",
            "Codex", "StarCoder", "CodeGen", "WizardCoder",
            "Sora", "DALL-E 3", "Midjourney", "Stable Diffusion", "FLUX",
        ]
    )
    known_tools: list[str] = field(
        default_factory=lambda: [
            "Cursor", "Windsurf", "Codeium", "GitHub Copilot", "Copilot",
            "Tabnine", "Replit Agent", "bolt.new", "v0.dev", "Lovable",
            "Claude Code", "Aider", "Sourcegraph Cody", "VS Code",
            "Visual Studio Code", "JetBrains AI", "IntelliJ", "PyCharm", "Zed",
        ]
    )
    frameworks: list[str] = field(
        default_factory=lambda: [
            "LangChain", "LangGraph", "LlamaIndex", "CrewAI", "AutoGen",
            "Semantic Kernel", "Haystack", "MCP", "Model Context Protocol",
            "Function Calling", "Tool Use", "RAG", "Vector Database",
            "Pinecone", "Weaviate", "Chroma", "Qdrant", "vLLM", "TensorRT",
            "ONNX", "Ollama",
        ]
    )
    known_companies: list[str] = field(
        default_factory=lambda: [
            "OpenAI", "Anthropic", "Google", "DeepMind", "Meta AI",
            "Microsoft", "Mistral AI", "Cohere", "AI21", "Vercel",
            "Supabase", "Hugging Face", "Together AI", "Groq",
            "Replicate", "Modal", "Anysphere",
        ]
    )
    official_vendors: list[str] = field(
        default_factory=lambda: ["openai", "anthropic", "google ai", "deepmind", "meta ai", "mistral"]
    )
    flagship_models: list[str] = field(
        default_factory=lambda: ["gpt-5", "claude 4", "gemini 3", "llama 4", "grok", "kimi", "deepseek"]
    )
    tool_keywords: list[str] = field(
        default_factory=lambda: ["cursor", "copilot", "windsurf", "codeium", "vs code", "vscode"]
    )
    framework_keywords: list[str] = field(
        default_factory=lambda: ["langchain", "llamaindex", "crewai", "autogen", "mcp", "rag"]
    )
    announcement_terms: list[str] = field(
        default_factory=lambda: ["launch", "introducing", "announcing", "release"]
    )
    prompt_terms: list[str] = field(default_factory=lambda: ["prompt engineering", "prompting"])
    ai_engineering_terms: list[str] = field(
        default_factory=lambda: ["ai engineer", "gen ai", "generative ai"]
    )
    bug_fix_terms: list[str] = field(default_factory=lambda: ["bug fix", "patch"])
    release_signal_terms: list[str] = field(
        default_factory=lambda: ["major", "breaking", "new feature", "introducing"]
    )
    maintenance_patterns: list[str] = field(
        default_factory=lambda: [
            "chore:", "chore(", "deps:", "ci:", "test:", "docs:",
            "bump version", "bump to", "bump deps", "dependency update",
            "refactor:", "cleanup", "typo", "lint",
            "merge pull request", "merge branch",
        ]
    )
    breaking_keywords: list[str] = field(
        default_factory=lambda: [
            "gpt-5", "gpt5", "claude 4", "claude4", "gemini 2", "llama 4",
            "cursor", "windsurf", "copilot x", "introducing", "announcing", "launch",
        ]
    )
    opinion_terms: list[str] = field(default_factory=lambda: ["opinion", "thoughts", "perspective"])
    ai_keywords: list[str] = field(
        default_factory=lambda: [
            "ai", "artificial intelligence", "machine learning", "llm",
            "gpt", "claude", "gemini", "llama", "mistral", "openai", "anthropic",
            "cursor", "copilot", "codeium", "windsurf", "langchain", "llamaindex",
            "rag", "vector", "embedding", "agent", "prompt", "fine-tun", "model",
            "neural", "transformer", "diffusion", "inference",
        ]
    )
    hn_keywords: list[str] = field(
        default_factory=lambda: [
            "gpt", "claude", "gemini", "llama", "mistral", "qwen", "deepseek",
            "anthropic", "openai", "chatgpt", "cursor", "copilot", "windsurf",
            "codeium", "tabnine", "aider", "langchain", "llamaindex", "rag",
            "vector database", "embedding", "fine-tuning", "prompt engineering",
            "ai agent", "mcp", "model context protocol", "function calling",
            "llm", "large language model", "machine learning",
            "artificial intelligence", "neural network", "transformer",
            "stable diffusion", "midjourney", "dall-e", "sora",
            "hugging face", "huggingface", "replicate", "groq", "perplexity",
            "ai coding", "code generation", "code completion", "vibe coding",
        ]
    )
    hn_negative_keywords: list[str] = field(
        default_factory=lambda: ["hiring", "job", "career", "salary", "who is hiring", "ask hn"]
    )
    product_keywords: list[str] = field(
        default_factory=lambda: [
            "ai", "gpt", "llm", "claude", "gemini", "chatbot", "copilot",
            "agent", "assistant", "machine learning", "coding", "developer",
            "api", "model", "prompt", "generate", "neural",
        ]
    )
    tag_rules: dict[str, list[str]] = field(
        default_factory=lambda: {
            "LLM": ["llm", "language model"],
            "API": ["api"],
            "Python": ["python"],
            "JavaScript": ["javascript", "typescript"],
            "React": ["react", "next.js"],
            "RAG": ["rag"],
            "Agents": ["agent"],
            "Fine-tuning": ["fine-tun"],
            "Prompting": ["prompt"],
            "Embeddings": ["embedding"],
            "Vector DB": ["vector"],
        }
    )
    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    @classmethod
    def from_overrides(cls, overrides: dict[str, Any] | None) -> Taxonomy:
        """Build a taxonomy from defaults plus a config mapping."""
        taxonomy = cls()
        if not overrides:
            return taxonomy
        known = {f.name for f in fields(cls)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown keyword list %r", key)
                continue
            if key == "weights" and isinstance(value, dict):
                merged = dict(taxonomy.weights)
                merged.update({k: float(v) for k, v in value.items()})
                changes[key] = merged
            elif key == "tag_rules" and isinstance(value, dict):
                changes[key] = {str(k): [str(t) for t in v] for k, v in value.items()}
            elif isinstance(value, list):
                changes[key] = [str(v) for v in value]
        return replace(taxonomy, **changes)

    def weight(self, name: str) -> float:
        return float(self.weights.get(name, DEFAULT_WEIGHTS.get(name, 0)))

    def sizes(self) -> dict[str, int]:
        return {
            "known_models": len(self.known_models),
            "known_tools": len(self.known_tools),
            "known_companies": len(self.known_companies),
        }


@lru_cache(maxsize=4096)
def _term_pattern(term: str) -> re.Pattern[str]:
    # Anchored at the start of a word only, so stems like "fine-tun" still match.
    return re.compile(r"(?<![a-z0-9])" + re.escape(term.lower()))


def contains(text: str, term: str) -> bool:
    """Return True if ``term`` starts a word in the (already lowercased) text."""
    return _term_pattern(term).search(text) is not None


def mentions(text: str, terms: Iterable[str]) -> bool:
    """Return True if any term occurs in the (already lowercased) text."""
    return any(contains(text, term) for term in terms)


def matching(text: str, terms: Iterable[str]) -> list[str]:
    """Return the terms that occur in the (already lowercased) text, in order."""
    return [term for term in terms if contains(text, term)]
