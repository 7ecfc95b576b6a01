import logging
from typing import Any, Callable, TypeVar

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from askdocs import __version__
from askdocs.api.chat import router as chat_router
from askdocs.api.documents import router as documents_router
from askdocs.config import Settings, get_settings
from askdocs.embeddings import EmbeddingError
from askdocs.logging_config import configure_logging
from askdocs.services.rag import DocumentQAService, get_service
from askdocs.telemetry import emit_app_startup_event
from askdocs.vectorstore import VectorStoreUnavailableError

_settings = get_settings()
configure_logging(_settings.log_level, _settings.log_dir)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="AskDocs API", version=__version__)
app.include_router(documents_router)
app.include_router(chat_router)


@app.on_event("startup")
async def _log_startup() -> None:
    emit_app_startup_event(_resolve_dependency(get_settings))


T = TypeVar("T")


def _resolve_dependency(factory: Callable[[], T]) -> T:
    """Resolve a dependency while respecting FastAPI overrides."""

    override: Any | None = app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved() if callable(resolved) else resolved


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Plain "ok" so a browser hitting the root sees the API is up."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness probe; does not touch the embedding model or the index."""
    return "ok"


@app.get("/readyz", response_class=PlainTextResponse)
def readiness_probe() -> str:
    """Readiness probe that ensures the embedding model and vector index respond."""

    settings: Settings = _resolve_dependency(get_settings)
    if settings.vector_store == "mock":
        return "ok"

    errors: list[str] = []
    try:
        service: DocumentQAService = _resolve_dependency(get_service)
    except (EmbeddingError, VectorStoreUnavailableError, ValueError) as exc:
        raise HTTPException(status_code=503, detail=f"service_unavailable: {exc}") from exc

    try:
        service.embedding_model.embed_query("__readyz__")
    except EmbeddingError as exc:
        errors.append(f"embedding_model_unavailable: {exc}")

    try:
        service.vector_index.count()
    except VectorStoreUnavailableError as exc:
        errors.append(f"vector_store_unavailable: {exc}")

    if errors:
        LOGGER.warning("Readiness check failed: %s", "; ".join(errors))
        raise HTTPException(status_code=503, detail="; ".join(errors))

    return "ok"


@app.get("/debug/config")
def debug_config() -> dict[str, Any]:
    """Expose the redacted runtime configuration outside production."""

    settings: Settings = _resolve_dependency(get_settings)
    if settings.is_production:
        raise HTTPException(status_code=404, detail="Not found")
    return settings.describe()
