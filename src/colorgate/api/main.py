"""Colorgate - FastAPI Application.

This module defines the FastAPI ``app`` instance, the REST routes, and the
``main()`` CLI function that launches the uvicorn server.

Endpoints
---------
========  ==========================  ======================================
Method    Path                        Purpose
========  ==========================  ======================================
GET       ``/api/config``             Tiers, thresholds, retry/batch settings
POST      ``/api/quality/check``      Run the quality gate on one image
POST      ``/api/batch/generate``     Generate and validate a batch of pages
========  ==========================  ======================================

The image generator and configuration live on ``app.state`` so they can be
replaced before startup (tests inject a scripted generator this way).

Usage
-----
CLI (installed entry point)::

    colorgate

Direct invocation::

    python -m colorgate.api.main
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from colorgate import __version__
from colorgate.api.models import BatchGenerateRequest, QualityCheckRequest
from colorgate.core.config import ColorgateConfig, config
from colorgate.core.errors import DecodeError
from colorgate.core.quality_gate import QualityGate
from colorgate.core.raster import decode_base64_image, to_base64_png
from colorgate.core.thresholds import ComplexityTier
from colorgate.generators.base import ImageGenerator, create_generator
from colorgate.workflows.attempts import AttemptState, PageOutcome, PageRequest
from colorgate.workflows.batch import BatchScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Set up the configuration and image generator on ``app.state``.

    Anything already placed on ``app.state`` before startup is kept and left
    for its owner to close.  A generator created here is closed on shutdown.
    """
    if getattr(app.state, "config", None) is None:
        app.state.config = config

    owns_generator = getattr(app.state, "generator", None) is None
    if owns_generator:
        app.state.generator = create_generator(app.state.config)
        logger.info("Image generator '%s' initialised.", app.state.generator.name)

    yield

    if owns_generator:
        await app.state.generator.aclose()
        app.state.generator = None
        logger.info("Image generator closed on shutdown.")


app = FastAPI(
    title="Colorgate",
    description="Print-safe quality gate and retry orchestration for coloring-book pages.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 Bad Request."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def _state_config(request: Request) -> ColorgateConfig:
    return getattr(request.app.state, "config", None) or config


# ---------------------------------------------------------------------------
# Response formatting.
# ---------------------------------------------------------------------------


def _page_result(outcome: PageOutcome) -> dict[str, Any]:
    """Convert a page outcome into the per-page response entry.

    Pages with an image are ``done``; an exhausted page keeps its last image
    with ``passed_gates`` false and a warning.  Pages without an image are
    ``failed`` with an error message.
    """
    result: dict[str, Any] = {
        "page_index": outcome.page_index,
        "status": outcome.status,
        "state": outcome.state.value,
        "passed_gates": outcome.passed,
        "attempts": len(outcome.attempts),
        "failure_reason": outcome.last_error.value if outcome.last_error else None,
    }

    if outcome.final_png is not None:
        result["image"] = base64.b64encode(outcome.final_png).decode("ascii")

    warnings = list(outcome.warnings)
    if outcome.state == AttemptState.EXHAUSTED and outcome.final_png is not None:
        reason = outcome.last_error.value if outcome.last_error else "unknown"
        warnings.insert(
            0,
            f"Image did not pass quality gates after {len(outcome.attempts)} attempts "
            f"(last failure: {reason})",
        )
    if warnings:
        result["warning"] = "; ".join(warnings)

    if outcome.status == "failed":
        result["error"] = outcome.error_message or outcome.error_code or "Page generation failed"
        if outcome.error_code:
            result["error_code"] = outcome.error_code

    return result


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config(request: Request) -> dict:
    """Return tiers with their thresholds plus the retry and batch settings."""
    cfg = _state_config(request)
    return {
        "version": __version__,
        "default_tier": cfg.default_tier.value,
        "tiers": {tier.value: cfg.thresholds_for(tier).as_dict() for tier in ComplexityTier},
        "retry": {
            "max_retries": cfg.max_retries,
            "retry_delay_seconds": cfg.retry_delay_seconds,
            "retry_backoff": cfg.retry_backoff,
        },
        "batch": {
            "batch_size": cfg.batch_size,
            "inter_batch_delay_seconds": cfg.inter_batch_delay_seconds,
            "batch_timeout_seconds": cfg.batch_timeout_seconds,
        },
        "generator": {
            "backend": cfg.generator_backend,
            "image_size": cfg.image_size,
        },
    }


@app.post("/api/quality/check")
async def check_quality(req: QualityCheckRequest, request: Request) -> dict:
    """Run the quality gate on a single base64 image.

    Returns the metrics, the verdict, any warnings, and the corrected
    (binarized) image as base64 PNG.

    Raises:
        HTTPException: 400 if the image cannot be decoded.
    """
    cfg = _state_config(request)
    gate = QualityGate.from_config(cfg, req.tier)

    try:
        source = decode_base64_image(req.image_base64)
    except DecodeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    result = await asyncio.to_thread(gate.check_image, source)
    response = result.to_dict()
    response["tier"] = (req.tier or cfg.default_tier).value
    response["image"] = to_base64_png(result.corrected_image)
    return response


@app.post("/api/batch/generate")
async def generate_batch(req: BatchGenerateRequest, request: Request) -> dict:
    """Generate, validate and retry a batch of coloring pages.

    Each page runs through the attempt state machine; pages are processed in
    sub-batches.  Results come back in request order together with the
    success and failure counts.
    """
    cfg = _state_config(request)
    generator: ImageGenerator = request.app.state.generator

    pages = [
        PageRequest(page_index=page.page_index, prompt=page.prompt, tier=page.tier or req.tier)
        for page in req.pages
    ]
    scheduler = BatchScheduler.from_config(generator, cfg, size=req.size)

    logger.info("Batch request: %d page(s), tier=%s.", len(pages), req.tier)
    batch = await scheduler.run(pages)

    return {
        "results": [_page_result(outcome) for outcome in batch.outcomes],
        "success_count": batch.success_count,
        "fail_count": batch.fail_count,
        "skipped_count": batch.count(AttemptState.SKIPPED),
        "timed_out": batch.timed_out,
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~colorgate.core.config.config`
    (``COLORGATE_SERVER_HOST``, ``COLORGATE_SERVER_PORT`` and
    ``COLORGATE_LOG_LEVEL``).  Registered as the ``colorgate`` console script.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "colorgate.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
