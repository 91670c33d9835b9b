"""
Domain Models — Sentiment, Manuals, Recommendations
====================================================
Pydantic models shared by the agent components and the API.

Python attributes are snake_case; the JSON wire form is camelCase
(``keyPhrases``, ``relevanceScore``, ``isRequired``...) so the dashboard
can consume the responses unchanged. Dump with ``by_alias=True``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SentimentLabel = Literal["positive", "neutral", "negative"]
Urgency = Literal["low", "medium", "high", "urgent"]
SectionPriority = Literal["low", "medium", "high"]
ManualStatus = Literal["processing", "ready", "error"]
ActionPriority = Literal["low", "medium", "high", "urgent"]
ActionCategory = Literal["immediate", "follow-up", "escalation", "information", "resolution"]
StepType = Literal["communication", "investigation", "escalation", "documentation", "resolution"]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Sentiment ────────────────────────────────────────────────────────────


class SentimentAnalysis(CamelModel):
    """Sentiment judgment for one ticket. Immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    sentiment: SentimentLabel
    score: float = Field(ge=0, le=1, description="0 = very negative, 1 = very positive")
    confidence: float = Field(ge=0, le=1)
    emotions: list[str] = Field(default_factory=list)
    urgency: Urgency
    key_phrases: list[str] = Field(default_factory=list)


class TicketInput(CamelModel):
    """Minimal ticket shape accepted for sentiment analysis."""

    id: str
    subject: str
    description: str

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        # Helpdesk ticket ids arrive as integers.
        return str(v)


# ── Operations manuals ───────────────────────────────────────────────────


class ManualSection(CamelModel):
    id: str
    title: str
    content: str
    category: str
    keywords: list[str] = Field(default_factory=list)
    priority: SectionPriority = "medium"
    last_updated: str = Field(default_factory=utc_now)


class ProcessedManual(CamelModel):
    id: str
    name: str
    sections: list[ManualSection] = Field(default_factory=list)
    uploaded_at: str
    processed_at: str
    status: ManualStatus


class TicketContext(CamelModel):
    """Ticket facts used to bias manual search ranking."""

    subject: str = ""
    description: str = ""
    sentiment: str = ""
    urgency: str = ""


class ManualQuery(CamelModel):
    query: str
    ticket_context: Optional[TicketContext] = None


class ManualSearchResult(CamelModel):
    section: ManualSection
    relevance_score: float = Field(ge=0, le=1)
    matched_keywords: list[str] = Field(default_factory=list)


# ── Action recommendations ───────────────────────────────────────────────


class ActionStep(CamelModel):
    id: str
    order: int = Field(ge=1)
    title: str
    description: str
    type: StepType
    is_required: bool
    estimated_duration: str
    resources: Optional[list[str]] = None


class ActionRecommendation(CamelModel):
    id: str
    title: str
    description: str
    priority: ActionPriority
    category: ActionCategory
    steps: list[ActionStep] = Field(default_factory=list)
    estimated_time: str
    required_skills: list[str] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)
    reasoning: str
    confidence: float = Field(ge=0, le=1)
    manual_references: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)


class Ticket(CamelModel):
    id: str
    subject: str
    description: str = ""
    customer: str = ""
    priority: Union[str, int] = ""
    status: Union[str, int] = ""
    created_at: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return str(v)


class CustomerHistory(CamelModel):
    previous_tickets: int = 0
    satisfaction_score: Optional[float] = None
    preferred_channel: Optional[str] = None


class RecommendationContext(CamelModel):
    ticket: Ticket
    sentiment_analysis: SentimentAnalysis
    manual_guidance: Optional[list[ManualSearchResult]] = None
    customer_history: Optional[CustomerHistory] = None
    manual_id: Optional[str] = Field(
        default=None,
        description="Manual to consult when no guidance is supplied (default: first manual)",
    )


class RecommendationFeedback(CamelModel):
    effectiveness: Optional[int] = None
    time_to_complete: Optional[str] = None
    customer_satisfaction: Optional[float] = None
    notes: Optional[str] = None


class ExecutionResult(CamelModel):
    success: bool
    message: str
    next_step: Optional[ActionStep] = None


# ── Outcome tagging ──────────────────────────────────────────────────────

T = TypeVar("T")

GENERATED = "generated"
FALLBACK = "fallback"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """A value plus where it came from: the model, or a deterministic fallback."""

    value: T
    source: Literal["generated", "fallback"] = GENERATED
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK

    @classmethod
    def generated(cls, value: T) -> "Outcome[T]":
        return cls(value=value, source=GENERATED)

    @classmethod
    def fallback(cls, value: T, error: Optional[str] = None) -> "Outcome[T]":
        return cls(value=value, source=FALLBACK, error=error)
