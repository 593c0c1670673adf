from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from omegaconf import DictConfig
from starlette.concurrency import run_in_threadpool

from .configuration import make_runtime_config, masked_container
from .content_fetcher import ContentFetcher
from .contentful import ContentfulError
from .factory import build_content_fetcher, build_orchestrator
from .models import ErrorCode, PageContent, PipelineOutcome
from .webhook import WebhookOrchestrator

runtime_config = make_runtime_config()

logging.basicConfig(
    level=str(runtime_config.app.log_level).upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="PDF Webhook API", version="0.1.0")

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_config() -> DictConfig:
    return runtime_config


@lru_cache(maxsize=1)
def get_orchestrator() -> WebhookOrchestrator:
    return build_orchestrator(runtime_config)


@lru_cache(maxsize=1)
def get_content_fetcher() -> ContentFetcher:
    return build_content_fetcher(runtime_config)


@app.on_event("shutdown")
def close_clients() -> None:
    logger.info("PDF Webhook API shutting down...")
    if get_orchestrator.cache_info().currsize:
        get_orchestrator().close()
    if get_content_fetcher.cache_info().currsize:
        get_content_fetcher().close()


def _workflow_headers(outcome: PipelineOutcome) -> Dict[str, str]:
    """Diagnostic headers; clients must not depend on them."""
    headers = {"X-PDF-Entry-ID": outcome.metadata.entity_id or "unknown"}
    if outcome.skipped:
        headers["X-PDF-Workflow-Status"] = outcome.reason or "skipped"
    elif outcome.success:
        headers["X-PDF-Workflow-Status"] = "success"
    else:
        stage = outcome.failed_stage
        headers["X-PDF-Workflow-Status"] = f"{stage.value}-failed" if stage else "rejected"
        if stage:
            headers["X-PDF-Error-Stage"] = stage.value
    if outcome.error:
        headers["X-PDF-Error-Type"] = outcome.error.code.value
    if outcome.asset:
        headers["X-PDF-Asset-ID"] = outcome.asset.id
    return headers


def _respond(outcome: PipelineOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=outcome.http_status,
        content=outcome.to_response_body(),
        headers=_workflow_headers(outcome),
    )


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/config")
def get_effective_config(config: DictConfig = Depends(get_config)) -> Dict[str, Any]:
    return masked_container(config)


@app.get("/pages/{slug}", response_model=PageContent)
def get_page(
    slug: str,
    locale: Optional[str] = None,
    fetcher: ContentFetcher = Depends(get_content_fetcher),
) -> PageContent:
    try:
        page = fetcher.fetch_page(slug, locale=locale)
    except ContentfulError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if page is None:
        raise HTTPException(status_code=404, detail="Page not found")
    return page


@app.post("/webhooks/pdf")
async def pdf_webhook(request: Request, orchestrator: WebhookOrchestrator = Depends(get_orchestrator)) -> JSONResponse:
    credentials = request.headers.get(orchestrator.config.webhook.secret_header)
    logger.info(f"Webhook PDF request from {request.headers.get('origin')} ({request.headers.get('user-agent')})")

    if not orchestrator.authenticate(credentials):
        return _respond(orchestrator.reject(ErrorCode.UNAUTHENTICATED, "Missing or invalid webhook secret"))

    try:
        event = orchestrator.adapt(await request.json())
    except ValueError as exc:
        return _respond(orchestrator.reject(ErrorCode.INVALID_JSON, f"Invalid JSON payload: {exc}"))

    try:
        outcome = await run_in_threadpool(orchestrator.handle, event, credentials)
    except Exception as exc:
        logger.exception(f"Webhook PDF critical error for entry {event.entity_id}")
        outcome = orchestrator.reject(ErrorCode.INTERNAL, str(exc), event)
    return _respond(outcome)


def run() -> None:
    uvicorn.run(app, host=runtime_config.app.host, port=int(runtime_config.app.port))
