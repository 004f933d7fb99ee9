"""FastAPI entrypoint for persona, model, simulation and trace endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, model_validator

from impersonaid import __version__
from impersonaid.config import AppConfig, load_config
from impersonaid.content.fetcher import DocumentSource, HttpDocumentSource
from impersonaid.content.reducer import ContentReducer
from impersonaid.delivery.router import DeliveryRouter
from impersonaid.delivery.simulator import PersonaSimulator
from impersonaid.errors import (
    FetchError,
    PersonaNotFoundError,
    ProviderError,
    ReductionError,
    UnknownProviderError,
)
from impersonaid.obs.tracing import TraceStore
from impersonaid.personas.persona import Persona, PersonaStore
from impersonaid.providers.registry import ProviderRegistry
from impersonaid.types import Document


class SavePersonaRequest(BaseModel):
    persona: Persona


class SimulateRequest(BaseModel):
    document_type: Literal["url", "markdown"] = "url"
    document_url: str | None = None
    markdown_content: str | None = None
    persona: str = Field(min_length=1)
    model: str = Field(default="openai", min_length=1)
    request: str = Field(min_length=1)

    @model_validator(mode="after")
    def _document_present(self) -> "SimulateRequest":
        if self.document_type == "url" and not self.document_url:
            raise ValueError("document_url is required when document_type is 'url'")
        if self.document_type == "markdown" and not self.markdown_content:
            raise ValueError("markdown_content is required when document_type is 'markdown'")
        return self


def create_app(
    config: AppConfig | None = None,
    *,
    persona_store: PersonaStore | None = None,
    providers: ProviderRegistry | None = None,
    document_source: DocumentSource | None = None,
    trace_store: TraceStore | None = None,
) -> FastAPI:
    """Build the API with explicit collaborators (defaults come from `config`)."""

    config = config or load_config()
    _personas = persona_store or PersonaStore(config.personas.personas_dir)
    _personas.load_all()
    _providers = providers or ProviderRegistry(config)
    _traces = trace_store or TraceStore()
    _source = document_source or HttpDocumentSource()
    _router = DeliveryRouter(ContentReducer(config.reduction), _source)
    _simulator = PersonaSimulator(router=_router, trace_store=_traces)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        _source.close()
        _providers.close()

    app = FastAPI(
        title="Impersonaid - Documentation Persona Simulator",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "persona_count": len(_personas.names()),
            "providers": _providers.supported(),
            "trace_count": len(_traces.list_recent(limit=1000)),
        }

    @app.get("/api/personas")
    def persona_names() -> dict[str, Any]:
        return {"personas": _personas.names()}

    @app.get("/api/personas/all")
    def all_personas() -> dict[str, Any]:
        _personas.load_all()
        return {"success": True, "personas": [p.model_dump() for p in _personas.all()]}

    @app.get("/api/personas/{name}")
    def persona_detail(name: str) -> dict[str, Any]:
        try:
            persona = _personas.get(name)
        except PersonaNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"success": True, "persona": persona.model_dump()}

    @app.post("/api/personas/save")
    def save_persona(request: SavePersonaRequest) -> dict[str, Any]:
        try:
            _personas.save(request.persona)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"success": True, "message": "Persona saved successfully"}

    @app.delete("/api/personas/{name}")
    def delete_persona(name: str) -> dict[str, Any]:
        try:
            _personas.delete(name)
        except PersonaNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"success": True, "message": "Persona deleted successfully"}

    @app.get("/api/models")
    def models() -> dict[str, Any]:
        return {"providers": _providers.supported(), "models": _providers.default_models()}

    @app.post("/api/simulate")
    def simulate(request: SimulateRequest) -> dict[str, Any]:
        try:
            persona = _personas.get(request.persona)
            adapter = _providers.get(request.model)
        except (PersonaNotFoundError, UnknownProviderError) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        try:
            if request.document_type == "markdown":
                document = Document.inline(request.markdown_content or "")
            else:
                document = _simulator.load_document(
                    request.document_url or "", adapter.capabilities
                )
            result = _simulator.simulate(persona, document, request.request, adapter)
        except (FetchError, ProviderError) as exc:
            raise HTTPException(
                status_code=502, detail=f"Error generating response: {exc}"
            ) from exc
        except ReductionError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return {
            "persona": request.persona,
            "request": request.request,
            "response": result.response,
            "strategy": result.plan.strategy.value,
            "trace_id": result.trace_id,
        }

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        return {"items": [asdict(record) for record in _traces.list_recent(limit=limit)]}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = _traces.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return _traces.summary()

    return app
