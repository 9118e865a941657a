"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- StorageConfig: Where persisted caches and scheduler state live
- CacheConfig: TTLs of the three logical caches
- FetchConfig: HTTP fetching settings shared by all source adapters
- SourcesConfig: Which adapters run and what they track
- AggregateConfig: Noise filter and truncation limits
- DedupConfig: Deduplication settings
- ClassifierConfig: External classifier (LLM) settings
- PoolConfig: Credential pool cooldown policy
- SchedulerConfig: Refresh intervals and crash-recovery timeout
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container

The ``keywords`` section is passed through as a plain mapping and merged
over the default taxonomy (see ``news_pulse.core.taxonomy``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
import os
from typing import Any

import yaml


_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class StorageConfig:
    """Configuration for durable storage.

    Attributes:
        data_dir: Directory holding the cache files and scheduler state
    """

    data_dir: str = "data"


@dataclass
class CacheConfig:
    """Configuration for the TTL caches.

    Attributes:
        source_ttl_seconds: Lifetime of raw per-source items
        analysis_ttl_seconds: Lifetime of per-item classification results
        news_ttl_seconds: Lifetime of the combined output
        quick_cache_max_age_seconds: Serve the combined output without asking
            the scheduler while its newest item is younger than this
    """

    source_ttl_seconds: float = 5 * 60
    analysis_ttl_seconds: float = 7 * 24 * 60 * 60
    news_ttl_seconds: float = 15 * 60
    quick_cache_max_age_seconds: float = 30 * 60


@dataclass
class FetchConfig:
    """Configuration for HTTP fetching.

    Attributes:
        timeout_seconds: Per-request HTTP timeout
        retries: Number of retry attempts for failed requests
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
        lookback_days: Maximum age of items kept by a fetch pass
        source_timeout_seconds: Upper bound for one adapter's whole fetch
        fetch_timeout_seconds: Upper bound for a full aggregation pass
    """

    timeout_seconds: float = 12.0
    retries: int = 1
    trust_env: bool = True
    user_agent: str = _DEFAULT_USER_AGENT
    lookback_days: float = 3
    source_timeout_seconds: float = 15.0
    fetch_timeout_seconds: float = 20.0


@dataclass
class SourcesConfig:
    """Configuration for the source adapters.

    Feed and repository entries are plain mappings so they can be edited in
    YAML without code changes.

    Attributes:
        enabled: Adapter names to register, in order
        official_feeds: Feeds of the "Official Changelogs" adapter
        rss_feeds: Feeds of the "RSS Feeds" adapter
        github_repos: Repositories tracked by the GitHub releases adapter
        github_token_env: Environment variable with an optional GitHub token
        hacker_news_max_stories: Cap on Hacker News stories kept per pass
        product_hunt_url: Feed page scraped by the Product Hunt adapter
        product_hunt_max_items: Cap on Product Hunt items kept per pass
    """

    enabled: list[str] = field(
        default_factory=lambda: [
            "official_changelogs",
            "github_releases",
            "hacker_news",
            "rss_feeds",
            "product_hunt",
        ]
    )
    official_feeds: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"name": "VS Code", "url": "https://code.visualstudio.com/feed.xml", "category": "ide_update"},
            {"name": "GitHub Changelog", "url": "https://github.blog/changelog/feed/", "category": "ide_update"},
            {"name": "Anthropic", "url": "https://www.anthropic.com/news/feed_anthropic.xml", "category": "model_launch"},
            {"name": "OpenAI", "url": "https://openai.com/news/rss.xml", "category": "model_launch"},
            {"name": "Google AI", "url": "https://blog.google/technology/ai/rss/", "category": "model_launch"},
            {"name": "Mistral AI", "url": "https://mistral.ai/feed.xml", "category": "model_launch"},
            {"name": "Vercel", "url": "https://vercel.com/atom", "category": "feature"},
            {"name": "Supabase", "url": "https://supabase.com/rss.xml", "category": "feature"},
        ]
    )
    rss_feeds: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"name": "DeepMind", "url": "https://deepmind.google/blog/rss.xml", "tier": "official", "category": "research"},
            {"name": "Meta AI", "url": "https://ai.meta.com/blog/rss.xml", "tier": "official", "category": "model_launch"},
            {"name": "Hugging Face", "url": "https://huggingface.co/blog/feed.xml", "tier": "official", "category": "model_launch"},
            {"name": "GitHub Blog", "url": "https://github.blog/feed/", "tier": "trusted", "category": "ide_update"},
            {"name": "Replit", "url": "https://blog.replit.com/feed.xml", "tier": "trusted", "category": "ide_update"},
            {"name": "LangChain", "url": "https://blog.langchain.dev/rss/", "tier": "trusted", "category": "agent"},
            {"name": "LlamaIndex", "url": "https://www.llamaindex.ai/blog/rss.xml", "tier": "trusted", "category": "agent"},
            {"name": "Together AI", "url": "https://www.together.ai/blog/rss.xml", "tier": "trusted", "category": "model_launch"},
            {"name": "Replicate", "url": "https://replicate.com/blog/rss.xml", "tier": "trusted", "category": "model_launch"},
            {"name": "Simon Willison", "url": "https://simonwillison.net/atom/entries/", "tier": "trusted", "category": "model_launch"},
            {"name": "Import AI", "url": "https://jack-clark.net/feed/", "tier": "trusted", "category": "research"},
            {"name": "The Verge AI", "url": "https://www.theverge.com/rss/ai-artificial-intelligence/index.xml", "tier": "aggregator", "category": "market"},
            {"name": "TechCrunch AI", "url": "https://techcrunch.com/category/artificial-intelligence/feed/", "tier": "aggregator", "category": "market"},
            {"name": "VentureBeat AI", "url": "https://venturebeat.com/category/ai/feed/", "tier": "aggregator", "category": "market"},
        ]
    )
    github_repos: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"owner": "langchain-ai", "repo": "langchain", "name": "LangChain", "category": "agent"},
            {"owner": "langchain-ai", "repo": "langgraph", "name": "LangGraph", "category": "agent"},
            {"owner": "run-llama", "repo": "llama_index", "name": "LlamaIndex", "category": "agent"},
            {"owner": "crewAIInc", "repo": "crewAI", "name": "CrewAI", "category": "agent"},
            {"owner": "ollama", "repo": "ollama", "name": "Ollama", "category": "model_launch"},
            {"owner": "vllm-project", "repo": "vllm", "name": "vLLM", "category": "api"},
            {"owner": "All-Hands-AI", "repo": "OpenHands", "name": "OpenHands", "category": "agent"},
            {"owner": "FlowiseAI", "repo": "Flowise", "name": "Flowise", "category": "agent"},
        ]
    )
    github_token_env: str = "GITHUB_TOKEN"
    hacker_news_max_stories: int = 20
    product_hunt_url: str = "https://www.producthunt.com/feed"
    product_hunt_max_items: int = 10


@dataclass
class AggregateConfig:
    """Configuration for the aggregation pass.

    Attributes:
        max_items: Maximum number of items returned by one pass
        min_title_length: Titles shorter than this are treated as noise
        analyze_top_n: How many top-ranked items are sent to classification
    """

    max_items: int = 50
    min_title_length: int = 15
    analyze_top_n: int = 15


@dataclass
class DedupConfig:
    """Configuration for cross-source deduplication.

    Attributes:
        title_prefix_length: Characters of the normalized title used as key
        min_title_key_length: Normalized titles this short never dedup
        title_similarity_threshold: Fuzzy match threshold (0-100) applied to
            normalized titles after exact matching; None disables it
    """

    title_prefix_length: int = 50
    min_title_key_length: int = 10
    title_similarity_threshold: int | None = 95


@dataclass
class ClassifierConfig:
    """Configuration for the external classifier.

    Attributes:
        provider: Provider name ("groq", "openai_compatible", "gemini")
        model: Model identifier; the provider default when None
        base_url: Base URL for the provider API; the provider default when None
        api_keys: Inline API keys (override environment variables)
        api_key_env: Environment variable prefix; PREFIX, PREFIX_2..PREFIX_10 are read
        trust_env: Whether to respect system proxy settings for API requests
        temperature: Sampling temperature
        max_tokens: Output token budget per call
        max_excerpt_chars: Excerpt characters sent with each item
        item_timeout_seconds: Timeout of a single classification call
        classify_timeout_seconds: Deadline for a whole classification pass
        batch_size: Items classified concurrently; derived from pool size when None
        batch_delay_seconds: Pause between batches
        max_rate_limit_retries: Retries on HTTP 429, each with a fresh key
        retry_backoff_seconds: Delay before each rate-limit retry
        min_relevance: Relevance floor for non-breaking items
    """

    provider: str = "groq"
    model: str | None = None
    base_url: str | None = None
    api_keys: list[str] = field(default_factory=list)
    api_key_env: str = "GROQ_API_KEY"
    trust_env: bool = True
    temperature: float = 0.1
    max_tokens: int = 500
    max_excerpt_chars: int = 800
    item_timeout_seconds: float = 8.0
    classify_timeout_seconds: float = 15.0
    batch_size: int | None = None
    batch_delay_seconds: float = 0.3
    max_rate_limit_retries: int = 2
    retry_backoff_seconds: list[float] = field(default_factory=lambda: [0.3, 0.6])
    min_relevance: int = 5


@dataclass
class PoolConfig:
    """Configuration for the credential pool.

    Attributes:
        cooldown_seconds: Base cooldown duration
        cooldown_multiplier: Growth factor for repeated rate limits
        cooldown_exponent_cap: Cap on the exponent of the multiplier
        max_errors: Consecutive errors before a key is marked unhealthy
    """

    cooldown_seconds: float = 60.0
    cooldown_multiplier: float = 1.5
    cooldown_exponent_cap: int = 5
    max_errors: int = 3


@dataclass
class SchedulerConfig:
    """Configuration for the refresh scheduler.

    Attributes:
        min_fetch_interval_seconds: Minimum time between source fetches
        min_analysis_interval_seconds: Minimum time between classification passes
        stale_threshold_seconds: Age of the last classification that forces a refresh
        max_processing_seconds: Processing flag older than this is considered stuck
        init_timeout_seconds: Upper bound for loading persisted state
    """

    min_fetch_interval_seconds: float = 5 * 60
    min_analysis_interval_seconds: float = 15 * 60
    stale_threshold_seconds: float = 30 * 60
    max_processing_seconds: float = 2 * 60
    init_timeout_seconds: float = 2.0


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file, created inside the data directory
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "news_pulse.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    aggregate: AggregateConfig = field(default_factory=AggregateConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    keywords: dict[str, Any] = field(default_factory=dict)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig.

    Unknown sections and unknown keys inside a section are ignored so an
    older config file keeps loading after a field is removed.
    """
    for section in fields(base):
        if section.name not in raw:
            continue
        value = raw[section.name]
        current = getattr(base, section.name)
        if is_dataclass(current) and isinstance(value, dict):
            known = {f.name for f in fields(current)}
            for key, item in value.items():
                if key in known:
                    setattr(current, key, item)
        elif isinstance(current, dict) and isinstance(value, dict):
            current.update(value)
    return base


def get_api_keys(cfg: ClassifierConfig) -> list[str]:
    """Collect classifier API keys from inline config or environment variables.

    Environment lookup reads ``PREFIX`` then ``PREFIX_2`` .. ``PREFIX_10``,
    skipping unset or blank values and duplicates.
    """
    if cfg.api_keys:
        candidates = list(cfg.api_keys)
    else:
        names = [cfg.api_key_env] + [f"{cfg.api_key_env}_{idx}" for idx in range(2, 11)]
        candidates = [os.getenv(name) or "" for name in names]

    keys: list[str] = []
    for key in candidates:
        key = key.strip()
        if key and key not in keys:
            keys.append(key)
    return keys


def get_github_token(cfg: SourcesConfig) -> str | None:
    """Get the optional GitHub token from the environment."""
    if not cfg.github_token_env:
        return None
    return os.getenv(cfg.github_token_env) or None
