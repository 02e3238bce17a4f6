"""Trusted external enrichment — short summaries from an allow-listed source."""

from __future__ import annotations

import hashlib
import logging
from urllib.parse import quote, urlsplit

import httpx

from sage.config import EnrichConfig
from sage.models import ExternalSnippet

log = logging.getLogger(__name__)


def is_trusted(url: str, allow_list: list[str]) -> bool:
    """True if *url* is a valid URL whose host is, or is a subdomain of, an allowed domain."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return False
    if not parts.scheme or not host:
        return False
    domains = [d.strip().lower() for d in allow_list if d.strip()]
    return any(host == d or host.endswith(f".{d}") for d in domains)


def snippet_id(url: str) -> str:
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


class ExternalEnricher:
    """Fetches one summary per topic from the configured summary endpoint.

    Topics are fetched one after another. A topic whose fetch fails, is
    untrusted, or comes back empty simply yields no snippet.
    """

    def __init__(self, cfg: EnrichConfig | None = None, *, client: httpx.AsyncClient | None = None):
        self.cfg = cfg or EnrichConfig()
        self._client = client

    def summary_url(self, topic: str) -> str:
        return self.cfg.summary_url.format(topic=quote(topic, safe=""))

    async def fetch_summary(self, client: httpx.AsyncClient, topic: str) -> ExternalSnippet | None:
        url = self.summary_url(topic)
        if not is_trusted(url, self.cfg.allow_list):
            log.info("Skipping untrusted enrichment URL %s", url)
            return None

        try:
            res = await client.get(url, headers={"accept": "application/json"})
            if not res.is_success:
                log.info("Enrichment lookup for %r returned HTTP %d", topic, res.status_code)
                return None
            data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Enrichment lookup for %r failed: %s", topic, e)
            return None

        if not isinstance(data, dict):
            return None
        text = str(data.get("extract") or "").strip()
        if not text:
            return None

        return ExternalSnippet(
            id=snippet_id(url),
            url=url,
            title=str(data.get("title") or topic),
            text=text,
        )

    async def auto_enrich(self, topics: list[str]) -> list[ExternalSnippet]:
        """Fetch snippets for up to ``max_snippets`` topics, in topic order."""
        targets = topics[: self.cfg.max_snippets]
        if not targets:
            return []

        if self._client is not None:
            return await self._fetch_all(self._client, targets)
        async with httpx.AsyncClient(timeout=self.cfg.timeout) as client:
            return await self._fetch_all(client, targets)

    async def _fetch_all(self, client: httpx.AsyncClient, topics: list[str]) -> list[ExternalSnippet]:
        snippets: list[ExternalSnippet] = []
        for topic in topics:
            snip = await self.fetch_summary(client, topic)
            if snip is not None:
                snippets.append(snip)
        return snippets
