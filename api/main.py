"""
Helpdesk Copilot — FastAPI Application
=======================================
Entry point for the support dashboard backend: sentiment scoring,
operations-manual search and AI action plans on top of Freshdesk tickets.

Startup:
  1. Configure the OpenAI client (custom endpoint, if any)
  2. Build the shared copilot components

All state (manuals, recommendations) is in-process and lost on restart.

Run:
  uvicorn api.main:app --host 0.0.0.0 --port 8000

Environment:
  LOG_LEVEL    — logging level (default: INFO)
  CORS_ORIGINS — comma-separated allowed origins
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agent.generation import configure_openai_client
from channels.freshdesk_client import (
    FreshdeskAPIError,
    get_freshdesk_client,
    handle_freshdesk_webhook,
)

from .dependencies import get_services
from .routes import router as copilot_router

logger = logging.getLogger("api")
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

# ── Configuration ────────────────────────────────────────────────────────

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")


# ── Lifespan ────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown."""
    logger.info("Starting Helpdesk Copilot API...")

    configure_openai_client()
    get_services()

    logger.info("API startup complete")
    yield

    logger.info("Shutting down API...")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Helpdesk Copilot",
    description="Sentiment scoring, manual search and action plans for support tickets",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(copilot_router)


# ── Error Bodies ─────────────────────────────────────────────────────────


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors()})
    logger.warning(f"Rejected {request.method} {request.url.path}: invalid {fields}")
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: missing or invalid {', '.join(fields)}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ── Health Check ─────────────────────────────────────────────────────────


@app.get("/health", tags=["health"])
async def health_check():
    return {
        "status": "healthy",
        "freshdesk": get_freshdesk_client() is not None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Freshdesk ────────────────────────────────────────────────────────────


@app.get("/tickets", tags=["freshdesk"])
async def list_tickets(request: Request):
    """Proxy the helpdesk ticket list (query params are passed through)."""
    client = get_freshdesk_client()
    if client is None:
        raise HTTPException(status_code=503, detail="Freshdesk is not configured")

    try:
        tickets = await client.get_tickets(dict(request.query_params))
    except FreshdeskAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"tickets": tickets}


@app.post("/webhooks/freshdesk", tags=["webhooks"])
async def freshdesk_webhook(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body must be JSON")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")
    return await handle_freshdesk_webhook(payload)
