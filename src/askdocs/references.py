"""Related web references for an uploaded document.

The search query is either supplied by the caller or derived by asking the
chat model for a one-sentence summary of the document. The query is then sent
to a web-search provider (Tavily by default).
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Protocol
from urllib.parse import urlparse

import requests
from requests.exceptions import RequestException

from askdocs.llm import ChatClient
from askdocs.prompting import SUMMARY_MAX_CHARS, SUMMARY_SYSTEM_PROMPT, build_summary_prompt
from askdocs.telemetry import emit_search_event

LOGGER = logging.getLogger(__name__)

DEFAULT_RESULT_LIMIT = 5
MIN_RESULT_LIMIT = 1
MAX_RESULT_LIMIT = 8


class MissingQueryInputError(ValueError):
    """Raised when no query was given and none can be derived from the document."""


class WebSearchError(RuntimeError):
    """Raised when the web-search provider fails."""


class WebSearchNotConfiguredError(WebSearchError):
    """Raised when the web-search provider has no API key."""


class DocumentLike(Protocol):
    content: str
    title: str
    file_name: str


class Summarizer(Protocol):
    def __call__(self, content: str, *, fallback: str) -> str:
        ...


@dataclass(slots=True)
class DerivedQuery:
    query: str
    summary_used: bool


@dataclass(slots=True)
class WebReference:
    title: str
    url: str
    snippet: str
    source: Optional[str]
    fetched_at: str
    score: Optional[float] = None


@dataclass(slots=True)
class ReferenceResult:
    query_used: str
    query_summary: str
    summary_used: bool
    references: List[WebReference] = field(default_factory=list)


class WebSearchClient(Protocol):
    def search(self, query: str, limit: int) -> List[WebReference]:
        ...


def _label_for(document: DocumentLike) -> str:
    title = (getattr(document, "title", "") or "").strip()
    if title:
        return title
    return (getattr(document, "file_name", "") or "").strip()


def derive_query(
    document: DocumentLike,
    explicit_query: Optional[str] = None,
    *,
    summarizer: Summarizer,
) -> DerivedQuery:
    """Pick the web-search query for *document*.

    A non-blank ``explicit_query`` is used as is. Otherwise the document must
    have content and a title or file name, and the query is the summarizer's
    one-line description of it. Summarizer errors propagate to the caller.
    """

    if explicit_query is not None and explicit_query.strip():
        return DerivedQuery(query=explicit_query.strip(), summary_used=False)

    content = getattr(document, "content", "") or ""
    label = _label_for(document)
    if not content or not label:
        raise MissingQueryInputError(
            "Unable to derive a search query for this document. Provide a `query` in the request body."
        )

    summary = summarizer(content, fallback=label)
    return DerivedQuery(query=summary, summary_used=True)


def summarize_document_one_liner(
    chat_client: ChatClient,
    content: str,
    fallback: str,
    *,
    max_chars: int = SUMMARY_MAX_CHARS,
) -> str:
    if not content or not content.strip():
        return fallback

    summary = chat_client.chat(
        build_summary_prompt(content, max_chars=max_chars),
        system_prompt=SUMMARY_SYSTEM_PROMPT,
        max_tokens=80,
        temperature=0.3,
    )
    return summary.strip() or fallback


def clamp_result_limit(
    limit: Any,
    default: int = DEFAULT_RESULT_LIMIT,
    lower: int = MIN_RESULT_LIMIT,
    upper: int = MAX_RESULT_LIMIT,
) -> int:
    """Truncate *limit* to an int inside ``[lower, upper]``; junk becomes ``default``."""

    if isinstance(limit, bool) or not isinstance(limit, (int, float)):
        return default
    if not math.isfinite(limit):
        return default
    return min(max(math.trunc(limit), lower), upper)


def extract_hostname(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname[4:] if hostname.startswith("www.") else hostname


class TavilySearchClient:
    """Query the Tavily search API for pages related to a query."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        endpoint: str = "https://api.tavily.com/search",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()

    def search(self, query: str, limit: int = DEFAULT_RESULT_LIMIT) -> List[WebReference]:
        if not self._api_key:
            raise WebSearchNotConfiguredError(
                "TAVILY_API_KEY is not configured. Set it in your environment to enable web references."
            )

        payload = {
            "query": query,
            "search_depth": "basic",
            "max_results": clamp_result_limit(limit),
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        try:
            response = self._session.post(self._endpoint, json=payload, headers=headers, timeout=self._timeout)
        except RequestException as error:
            raise WebSearchError(f"Web reference search failed: {error}") from error

        if not response.ok:
            raise WebSearchError(f"Web reference search failed ({response.status_code}): {response.text}")

        data = response.json()
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            results = []
        fetched_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return [self._to_reference(item, fetched_at) for item in results[:limit]]

    @staticmethod
    def _to_reference(item: dict[str, Any], fetched_at: str) -> WebReference:
        url = item.get("url") or ""
        title = (item.get("title") or "").strip() or url or "Untitled"
        snippet = (item.get("content") or item.get("snippet") or "").strip()
        score = item.get("score")
        return WebReference(
            title=title,
            url=url,
            snippet=snippet,
            source=extract_hostname(url),
            fetched_at=fetched_at,
            score=float(score) if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
        )


def find_references(
    document: DocumentLike,
    explicit_query: Optional[str],
    limit: Any,
    *,
    summarizer: Summarizer,
    search_client: WebSearchClient,
) -> ReferenceResult:
    derived = derive_query(document, explicit_query, summarizer=summarizer)
    effective_limit = clamp_result_limit(limit)

    started = time.perf_counter()
    try:
        references = search_client.search(derived.query, effective_limit)
    except Exception as error:
        emit_search_event(
            query=derived.query,
            summary_used=derived.summary_used,
            limit=effective_limit,
            results=0,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )
        raise

    emit_search_event(
        query=derived.query,
        summary_used=derived.summary_used,
        limit=effective_limit,
        results=len(references),
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )
    return ReferenceResult(
        query_used=derived.query,
        query_summary=derived.query,
        summary_used=derived.summary_used,
        references=list(references),
    )


__all__ = [
    "DerivedQuery",
    "MissingQueryInputError",
    "ReferenceResult",
    "TavilySearchClient",
    "WebReference",
    "WebSearchClient",
    "WebSearchError",
    "WebSearchNotConfiguredError",
    "clamp_result_limit",
    "derive_query",
    "extract_hostname",
    "find_references",
    "summarize_document_one_liner",
]
