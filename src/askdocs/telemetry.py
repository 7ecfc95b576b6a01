"""Structured lifecycle events for upload, retrieval and answering.

Every event is a dict logged through :mod:`askdocs.logging_config`'s JSON
formatter. ``step`` names the stage (``ingest.file.complete``,
``retrieval.search`` ...), ``details`` carries stage-specific fields and a
failed stage is logged at ERROR with the exception and its traceback.
"""

from __future__ import annotations

import logging
import os
import platform
import socket
import sys
import time
import traceback
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from askdocs.config import Settings

LOGGER = logging.getLogger("askdocs.telemetry")

PREVIEW_CHARS = 120


def _preview(text: str) -> str:
    return text if len(text) <= PREVIEW_CHARS else f"{text[:PREVIEW_CHARS]}..."


def log_event(
    step: str,
    *,
    logger: Optional[logging.Logger] = None,
    session_id: str | None = None,
    req_id: str | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
    **details: Any,
) -> None:
    """Log one event; ``None`` detail values are left out."""

    event: dict[str, Any] = {"step": step}
    if session_id:
        event["session_id"] = session_id
    if req_id:
        event["req_id"] = req_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    present = {key: value for key, value in details.items() if value is not None}
    if present:
        event["details"] = present

    logger = logger or LOGGER
    if error is None:
        logger.info(event)
        return
    event["error"] = f"{type(error).__name__}: {error}"
    event["traceback"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    logger.error(event)


def emit_app_startup_event(settings: "Settings") -> None:
    log_event(
        "app.startup",
        config=settings.describe(),
        python=sys.version.split()[0],
        platform=platform.platform(),
        pid=os.getpid(),
        hostname=socket.gethostname(),
    )


def emit_ingest_event(
    step: str,
    *,
    session_id: str,
    file_name: str,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    language: str | None = None,
    chunks: int | None = None,
    embedded: int | None = None,
    error: BaseException | None = None,
) -> None:
    log_event(
        step,
        session_id=session_id,
        duration_ms=duration_ms,
        error=error,
        file=file_name,
        size_bytes=size_bytes,
        language=language,
        chunks=chunks,
        embedded=embedded,
    )


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, error: BaseException | None = None
) -> None:
    log_event(
        "embeddings.compute",
        duration_ms=duration_ms,
        error=error,
        model=model,
        count=count,
        per_item_ms=round(duration_ms / count, 3) if count else None,
    )


def emit_vectorstore_event(
    step: str,
    *,
    backend: str,
    collection: str,
    count: int,
    error: BaseException | None = None,
) -> None:
    log_event(step, error=error, backend=backend, collection=collection, count=count)


def emit_retrieval_event(
    *,
    session_id: str,
    query: str,
    top_k: int,
    document_id: int | None,
    hits: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    log_event(
        "retrieval.search",
        session_id=session_id,
        duration_ms=duration_ms,
        query=_preview(query),
        top_k=top_k,
        document_id=document_id,
        hits=hits,
    )


def emit_answer_request(
    *,
    req_id: str,
    session_id: str,
    question: str,
    system_prompt: str,
    sources: Iterable[Any],
    fallback: bool,
    temperature: float,
    max_tokens: int,
) -> None:
    log_event(
        "answer.request",
        req_id=req_id,
        session_id=session_id,
        question=_preview(question),
        system_prompt_len=len(system_prompt),
        sources=list(sources),
        fallback=fallback,
        temperature=temperature,
        max_tokens=max_tokens,
    )


def emit_answer_result(
    *,
    req_id: str,
    session_id: str,
    model: str,
    duration_ms: float,
    answer: str | None = None,
    error: BaseException | None = None,
) -> None:
    log_event(
        "answer.result",
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        error=error,
        model=model,
        answer=_preview(answer) if answer is not None else None,
    )


def emit_search_event(
    *,
    query: str,
    summary_used: bool,
    limit: int,
    results: int,
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    log_event(
        "references.search",
        duration_ms=duration_ms,
        error=error,
        query=_preview(query),
        summary_used=summary_used,
        limit=limit,
        results=results,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    session_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    log_event("exception", session_id=session_id, error=error, module=module, suggestion=suggestion)


@contextmanager
def traced_duration(
    step: str,
    *,
    logger: Optional[logging.Logger] = None,
    session_id: str | None = None,
    **details: Any,
) -> Iterator[None]:
    """Log ``<step>.start`` then ``<step>.complete`` or ``<step>.error`` with the elapsed time."""

    log_event(f"{step}.start", logger=logger, session_id=session_id, **details)
    started = time.perf_counter()
    try:
        yield
    except Exception as error:
        log_event(
            f"{step}.error",
            logger=logger,
            session_id=session_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
            **details,
        )
        raise
    log_event(
        f"{step}.complete",
        logger=logger,
        session_id=session_id,
        duration_ms=(time.perf_counter() - started) * 1000.0,
        **details,
    )


__all__ = [
    "emit_answer_request",
    "emit_answer_result",
    "emit_app_startup_event",
    "emit_embeddings_event",
    "emit_exception",
    "emit_ingest_event",
    "emit_retrieval_event",
    "emit_search_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]
