"""
GitHub Releases adapter.

Tracks a fixed list of repositories and keeps only major or feature
releases: patch releases and maintenance notes are skipped, and at most one
release per repository is reported.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import re
import time
from typing import Any, Callable

import httpx

from ..core.identity import item_id
from ..core.taxonomy import mentions
from ..core.types import Item, SourceResult, isoformat, parse_timestamp
from .base import Source
from .fetcher import fetch_url
from .text import truncate_markdown

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"

_TAG_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")

_SIGNIFICANT_TERMS = (
    "major", "breaking", "new feature", "introducing", "completely new",
    "rewrite", "v1.0", "v2.0", "v3.0", "launch", "announcing", "big update",
    "milestone",
)


@dataclass
class TrackedRepo:
    """A repository whose releases are reported.

    Attributes:
        owner: GitHub owner or organization
        repo: Repository name
        name: Display name, used as the item source
        category: Category hint for its releases
    """

    owner: str
    repo: str
    name: str
    category: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> TrackedRepo:
        return cls(
            owner=str(data["owner"]),
            repo=str(data["repo"]),
            name=str(data.get("name") or data["repo"]),
            category=data.get("category"),
        )

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


def is_major_release(tag_name: str, release_name: str = "", body: str = "") -> bool:
    """Decide whether a release is worth reporting.

    ``x.0.0`` and ``x.y.0`` (x >= 1) versions are major or feature releases;
    any non-zero patch version is skipped. Tags without a semantic version
    count only when the notes use launch language.

    Example:
        >>> is_major_release("v2.0.0")
        True
        >>> is_major_release("v1.4.2", "", "Introducing streaming")
        False
        >>> is_major_release("nightly", "", "Introducing a new runtime")
        True
    """
    match = _TAG_VERSION_RE.search(tag_name or "")
    if match:
        major, minor, patch = (int(part) for part in match.groups())
        if patch > 0:
            return False
        if major >= 1:
            return True
    text = f"{tag_name} {release_name} {body}".lower()
    return mentions(text, _SIGNIFICANT_TERMS)


class GitHubReleasesSource(Source):
    """Adapter for major releases of tracked repositories."""

    name = "GitHub Releases"

    def __init__(
        self,
        repos: list[TrackedRepo],
        token: str | None = None,
        retries: int = 1,
        per_page: int = 10,
        api_base: str = GITHUB_API_BASE,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(retries=retries, clock=clock)
        self.repos = repos
        self.token = token
        self.per_page = per_page
        self.api_base = api_base.rstrip("/")

    async def fetch(self, client: httpx.AsyncClient, lookback: timedelta) -> SourceResult:
        if not self.repos:
            return SourceResult(source=self.name)
        cutoff = self.cutoff(lookback)
        results = await asyncio.gather(*(self._repo_release(client, repo, cutoff) for repo in self.repos))

        items = [item for item, _ in results if item is not None]
        errors = [f"{repo.slug}: {error}" for repo, (_, error) in zip(self.repos, results) if error]
        error = "; ".join(errors) if errors and len(errors) == len(self.repos) else None
        return SourceResult(source=self.name, items=items, error=error)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _repo_release(
        self,
        client: httpx.AsyncClient,
        repo: TrackedRepo,
        cutoff: datetime,
    ) -> tuple[Item | None, str | None]:
        url = f"{self.api_base}/repos/{repo.owner}/{repo.repo}/releases"
        result = await fetch_url(
            client,
            url,
            self.retries,
            headers=self._headers(),
            params={"per_page": self.per_page},
        )
        if not result.ok:
            return None, result.error
        try:
            releases = result.json()
        except ValueError as exc:
            return None, f"Invalid JSON: {exc}"
        if not isinstance(releases, list):
            return None, "Unexpected payload"

        for release in releases:
            if not isinstance(release, dict) or release.get("draft"):
                continue
            published = parse_timestamp(release.get("published_at"))
            if published is None or published <= cutoff:
                continue
            tag = release.get("tag_name") or ""
            release_name = release.get("name") or ""
            body = release.get("body") or ""
            if not is_major_release(tag, release_name, body):
                continue
            # Releases come newest first; the first qualifying one wins.
            return _release_item(repo, release, published), None
        return None, None


def _release_item(repo: TrackedRepo, release: dict[str, Any], published: datetime) -> Item:
    tag = release.get("tag_name") or ""
    release_name = (release.get("name") or "").strip()
    title = f"{repo.name} {tag}"
    if release_name and release_name != tag:
        title = f"{title} - {release_name}"
    return Item(
        id=item_id(repo.name, f"github-{repo.owner}-{repo.repo}-{release.get('id')}"),
        title=title,
        link=release.get("html_url") or f"https://github.com/{repo.slug}/releases",
        published_at=isoformat(published),
        source=repo.name,
        tier="trusted",
        excerpt=truncate_markdown(release.get("body") or "", 400),
        source_category=repo.category,
        source_tags=(repo.name, "Release", "Major Update"),
    )
