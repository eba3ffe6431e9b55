"""FastAPI entrypoint for chunking, analysis and run endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from essay_eval.backends.registry import build_default_registry
from essay_eval.config import ChunkingConfig, DispatchConfig, RunConfig, Settings
from essay_eval.errors import EssayEvalError
from essay_eval.ingest.chunker import MathAwareChunker, document_stats
from essay_eval.ingest.parser import ParserRegistry
from essay_eval.obs.logging import setup_logging
from essay_eval.obs.tracing import RunStore
from essay_eval.runner.controller import RunController
from essay_eval.scoring.catalog import CATALOGS
from essay_eval.types import AnalysisRun, Document, DocumentAnalysis, RunMode


class DocumentIn(BaseModel):
    title: str = ""
    text: str


class RunOptions(BaseModel):
    inter_call_delay_seconds: float | None = Field(default=None, ge=0.0)
    max_retries: int | None = Field(default=None, ge=0)
    per_call_timeout_seconds: float | None = Field(default=None, gt=0.0)
    run_deadline_seconds: float | None = Field(default=None, gt=0.0)
    max_words_per_chunk: int | None = Field(default=None, ge=1)


class AnalyzeRequest(BaseModel):
    document: DocumentIn
    mode: RunMode = RunMode.SINGLE
    second_document: DocumentIn | None = None
    weights: dict[str, float] | None = None
    backend: str | None = None
    catalog: str = "composite"
    options: RunOptions = Field(default_factory=RunOptions)


class AnalyzeFilesRequest(BaseModel):
    path: str
    mode: RunMode = RunMode.SINGLE
    second_path: str | None = None
    weights: dict[str, float] | None = None
    backend: str | None = None
    catalog: str = "composite"
    options: RunOptions = Field(default_factory=RunOptions)


class ChunkRequest(BaseModel):
    text: str
    max_words_per_chunk: int = Field(default=800, ge=1)


app = FastAPI(title="Essay Evaluation Service", version="0.1.0")

_settings = Settings()
setup_logging(_settings.essay_eval_log_level, json_output=_settings.essay_eval_log_json)

_backend_registry = build_default_registry()
_parser_registry = ParserRegistry()
_chunker = MathAwareChunker(ChunkingConfig())
_run_store = RunStore()


def _run_config(catalog: str, options: RunOptions) -> RunConfig:
    dispatch_overrides = options.model_dump(
        exclude_none=True, exclude={"max_words_per_chunk"}
    )
    chunking = ChunkingConfig()
    if options.max_words_per_chunk is not None:
        chunking = ChunkingConfig(max_words_per_chunk=options.max_words_per_chunk)
    return RunConfig(
        chunking=chunking,
        dispatch=DispatchConfig(**dispatch_overrides),
        catalog=catalog,
    )


async def _execute(
    documents: list[Document],
    *,
    mode: RunMode,
    weights: dict[str, float] | None,
    backend_name: str | None,
    catalog: str,
    options: RunOptions,
) -> dict[str, Any]:
    if mode is RunMode.COMPARATIVE and len(documents) != 2:
        raise HTTPException(status_code=400, detail="Comparative mode needs a second document")
    try:
        backend = _backend_registry.create(
            backend_name or _settings.essay_eval_default_backend, _settings
        )
        controller = RunController(
            backend, config=_run_config(catalog, options), run_store=_run_store
        )
        if mode is RunMode.COMPARATIVE:
            run = await controller.run_comparative(documents[0], documents[1], weights=weights)
        else:
            run = await controller.run_single(documents[0], weights=weights)
    except EssayEvalError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return _run_payload(run)


def _analysis_payload(analysis: DocumentAnalysis, *, include_tasks: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "doc_id": analysis.document.doc_id,
        "title": analysis.document.title,
        "chunk_count": len(analysis.chunks),
        "composite": asdict(analysis.composite),
        "category_results": [asdict(category) for category in analysis.category_results],
    }
    if include_tasks:
        payload["tasks"] = [asdict(record) for record in analysis.task_records]
    return payload


def _run_payload(run: AnalysisRun, *, include_tasks: bool = False) -> dict[str, Any]:
    primary = run.analyses[0]
    return {
        "run_id": run.run_id,
        "mode": run.mode.value,
        "status": run.status.value,
        "backend": run.backend_used,
        "category_results": [asdict(category) for category in primary.category_results],
        "composite_score": primary.composite.value,
        "degraded_metrics": [asdict(item) for item in run.degraded_metrics],
        "comparative_delta": run.comparison.delta if run.comparison else None,
        "comparative_label": run.comparison.label if run.comparison else None,
        "category_deltas": run.comparison.category_deltas if run.comparison else {},
        "documents": [
            _analysis_payload(analysis, include_tasks=include_tasks) for analysis in run.analyses
        ],
        "started_at": run.started_at.isoformat(),
        "duration_ms": run.duration_ms,
        "backend_calls": run.backend_calls,
    }


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "default_backend": _settings.essay_eval_default_backend,
        "backends": _backend_registry.availability(_settings),
        "catalogs": sorted(CATALOGS),
        "run_count": len(_run_store),
    }


@app.post("/chunks")
def chunks(request: ChunkRequest) -> dict[str, Any]:
    items = _chunker.chunk(request.text, request.max_words_per_chunk)
    return {
        "chunks": [
            {
                "id": f"chunk-{chunk.ordinal + 1}",
                "chunk_id": chunk.chunk_id,
                "text": chunk.text,
                "word_count": chunk.word_count,
                "start_offset": chunk.start_offset,
                "end_offset": chunk.end_offset,
                "preview": chunk.preview,
                "has_math": chunk.has_math,
            }
            for chunk in items
        ],
        "stats": document_stats(request.text, request.max_words_per_chunk),
    }


@app.post("/analyze")
async def analyze(request: AnalyzeRequest) -> dict[str, Any]:
    documents = [Document.create(request.document.title, request.document.text)]
    if request.second_document is not None:
        documents.append(
            Document.create(request.second_document.title, request.second_document.text)
        )
    return await _execute(
        documents,
        mode=request.mode,
        weights=request.weights,
        backend_name=request.backend,
        catalog=request.catalog,
        options=request.options,
    )


@app.post("/analyze/files")
async def analyze_files(request: AnalyzeFilesRequest) -> dict[str, Any]:
    paths = [request.path] + ([request.second_path] if request.second_path else [])
    try:
        documents = [_parser_registry.parse_path(path) for path in paths]
    except EssayEvalError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return await _execute(
        documents,
        mode=request.mode,
        weights=request.weights,
        backend_name=request.backend,
        catalog=request.catalog,
        options=request.options,
    )


@app.get("/runs")
def runs(limit: int = 20) -> dict[str, Any]:
    return {"items": [run.summary() for run in _run_store.list_recent(limit=limit)]}


@app.get("/runs/{run_id}")
def run_detail(run_id: str) -> dict[str, Any]:
    try:
        run = _run_store.get(run_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _run_payload(run, include_tasks=True)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _run_store.summary()
