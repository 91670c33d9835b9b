"""
Dashboard Routes — Sentiment, Manuals, Recommendations
=======================================================
JSON endpoints consumed by the support dashboard.

Endpoints:
  GET    /manuals                    — list processed manuals
  DELETE /manuals?id=...             — delete one manual
  POST   /upload-manual              — multipart upload (file, name)
  POST   /analyze-sentiment          — batch sentiment
  POST   /analyze-single-ticket       — one ticket's sentiment
  POST   /search-manual              — contextual manual search
  POST   /generate-recommendations   — action plans for a ticket
  GET    /recommendations/{ticket}   — latest plans for a ticket
  POST   /execute-action             — step lookup / next step
  POST   /recommendation-feedback    — feedback (logged only)

Errors are always ``{"error": "..."}``: 400 for missing fields, 404 for an
unknown manual on delete, 500 for anything unexpected.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import Field

from agent.models import (
    CamelModel,
    ManualQuery,
    RecommendationContext,
    RecommendationFeedback,
    TicketContext,
    TicketInput,
)

from .dependencies import CopilotServices, get_services

logger = logging.getLogger("api.routes")

router = APIRouter(tags=["copilot"])


# ── Request Models ───────────────────────────────────────────────────────


class AnalyzeSentimentRequest(CamelModel):
    tickets: list[TicketInput]


class SingleTicketRequest(CamelModel):
    subject: str = Field(min_length=1)
    description: str = Field(min_length=1)
    customer_history: Optional[str] = None


class SearchManualRequest(CamelModel):
    manual_id: str = Field(min_length=1)
    query: str = Field(min_length=1)
    ticket_context: Optional[TicketContext] = None


class GenerateRecommendationsRequest(CamelModel):
    context: RecommendationContext


class ExecuteActionRequest(CamelModel):
    ticket_id: str = Field(min_length=1)
    recommendation_id: str = Field(min_length=1)
    step_id: str = Field(min_length=1)


class FeedbackRequest(CamelModel):
    ticket_id: str = Field(min_length=1)
    recommendation_id: str = Field(min_length=1)
    feedback: RecommendationFeedback


def new_manual_id() -> str:
    """``manual-<epoch ms>-<9 char suffix>``."""
    return f"manual-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed to {action}")


# ── Manuals ──────────────────────────────────────────────────────────────


@router.get("/manuals")
async def list_manuals(services: CopilotServices = Depends(get_services)):
    try:
        manuals = services.manual_processor.get_all_manuals()
    except Exception as e:
        raise _internal_error("retrieve manuals", e)
    return {"manuals": [m.to_json() for m in manuals]}


@router.delete("/manuals")
async def delete_manual(
    id: Optional[str] = Query(default=None),
    services: CopilotServices = Depends(get_services),
):
    if not id:
        raise HTTPException(status_code=400, detail="Manual ID is required")

    if not services.manual_processor.delete_manual(id):
        raise HTTPException(status_code=404, detail="Manual not found")
    return {"success": True}


@router.post("/upload-manual")
async def upload_manual(
    file: Optional[UploadFile] = File(default=None),
    name: Optional[str] = Form(default=None),
    services: CopilotServices = Depends(get_services),
):
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    if not name:
        raise HTTPException(status_code=400, detail="Manual name is required")

    raw = await file.read()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 text")

    if not text.strip():
        raise HTTPException(status_code=400, detail="File appears to be empty")

    manual_id = new_manual_id()
    try:
        manual = await services.manual_processor.process_manual_text(manual_id, name, text)
    except Exception as e:
        raise _internal_error("process manual", e)

    return {"success": True, "manual": manual.to_json()}


@router.post("/search-manual")
async def search_manual(
    request: SearchManualRequest,
    services: CopilotServices = Depends(get_services),
):
    query = ManualQuery(query=request.query, ticket_context=request.ticket_context)
    try:
        results = await services.manual_processor.search_manual(request.manual_id, query)
    except Exception as e:
        raise _internal_error("search manual", e)
    return {"results": [r.to_json() for r in results]}


# ── Sentiment ────────────────────────────────────────────────────────────


@router.post("/analyze-sentiment")
async def analyze_sentiment(
    request: AnalyzeSentimentRequest,
    services: CopilotServices = Depends(get_services),
):
    try:
        results = await services.sentiment_analyzer.analyze_batch(request.tickets)
    except Exception as e:
        raise _internal_error("analyze sentiment", e)
    return {"results": {ticket_id: a.to_json() for ticket_id, a in results.items()}}


@router.post("/analyze-single-ticket")
async def analyze_single_ticket(
    request: SingleTicketRequest,
    services: CopilotServices = Depends(get_services),
):
    try:
        analysis = await services.sentiment_analyzer.analyze_ticket(
            request.subject, request.description, request.customer_history
        )
    except Exception as e:
        raise _internal_error("analyze ticket sentiment", e)
    return {"analysis": analysis.to_json()}


# ── Recommendations ──────────────────────────────────────────────────────


@router.post("/generate-recommendations")
async def generate_recommendations(
    request: GenerateRecommendationsRequest,
    services: CopilotServices = Depends(get_services),
):
    try:
        recommendations = await services.recommendation_engine.generate_recommendations(
            request.context
        )
    except Exception as e:
        raise _internal_error("generate recommendations", e)
    return {"recommendations": [r.to_json() for r in recommendations]}


@router.get("/recommendations/{ticket_id}")
async def get_recommendations(
    ticket_id: str,
    services: CopilotServices = Depends(get_services),
):
    recommendations = services.recommendation_engine.get_recommendations(ticket_id)
    return {"recommendations": [r.to_json() for r in recommendations]}


@router.post("/execute-action")
async def execute_action(
    request: ExecuteActionRequest,
    services: CopilotServices = Depends(get_services),
):
    try:
        result = await services.recommendation_engine.execute_action(
            request.ticket_id, request.recommendation_id, request.step_id
        )
    except Exception as e:
        raise _internal_error("execute action", e)
    return result.to_json()


@router.post("/recommendation-feedback")
async def recommendation_feedback(
    request: FeedbackRequest,
    services: CopilotServices = Depends(get_services),
):
    try:
        success = await services.recommendation_engine.update_recommendation_feedback(
            request.ticket_id, request.recommendation_id, request.feedback
        )
    except Exception as e:
        raise _internal_error("submit feedback", e)
    return {"success": success}
