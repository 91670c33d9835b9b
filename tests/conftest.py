"""
Shared Test Fixtures — Helpdesk Copilot
========================================
A scripted stand-in for the structured generation client, the component
graph built around it, and sample tickets/manuals.

Usage:
  pytest tests/ -v
"""

from __future__ import annotations

import os
import sys
from typing import Any, Callable, Optional, Union

import pytest

# Ensure the project packages are importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agent.generation import GenerationError  # noqa: E402
from agent.models import (  # noqa: E402
    RecommendationContext,
    SentimentAnalysis,
    Ticket,
)


# ── Scripted Generator ───────────────────────────────────────────────────

Scripted = Union[dict, str, Exception, Callable[[str], Any]]


class FakeGenerator:
    """Answers generation calls from a script keyed by schema name.

    A script entry is a dict (validated into the schema), an exception
    (raised), or a callable taking the prompt and returning either.
    ``text`` plays the same role for generate_text(). Unscripted calls
    raise GenerationError, which exercises the fallbacks.
    """

    def __init__(self):
        self.structured: dict[str, Scripted] = {}
        self.text: Optional[Scripted] = None
        self.calls: list[tuple[str, str]] = []

    def _resolve(self, entry: Scripted, prompt: str):
        result = entry(prompt) if callable(entry) else entry
        if isinstance(result, Exception):
            raise result
        return result

    async def generate(self, schema, prompt: str):
        self.calls.append((schema.__name__, prompt))
        entry = self.structured.get(schema.__name__)
        if entry is None:
            raise GenerationError(f"No scripted response for {schema.__name__}")
        return schema.model_validate(self._resolve(entry, prompt))

    async def generate_text(self, prompt: str) -> str:
        self.calls.append(("text", prompt))
        if self.text is None:
            raise GenerationError("No scripted text response")
        return self._resolve(self.text, prompt)

    def prompts_for(self, schema_name: str) -> list[str]:
        return [prompt for name, prompt in self.calls if name == schema_name]


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def services(fake_generator):
    from api.dependencies import build_services

    return build_services(fake_generator, batch_delay=0, extraction_delay=0)


@pytest.fixture
def test_client(services):
    """FastAPI TestClient wired to the scripted generator."""
    from fastapi.testclient import TestClient

    from api.dependencies import set_services
    from api.main import app

    set_services(services)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
    set_services(None)


# ── Sample Data ──────────────────────────────────────────────────────────


def make_plan(title: str = "Resolve login issue", steps: int = 3, **overrides) -> dict:
    plan = {
        "title": title,
        "description": "Walk the customer through a password reset",
        "priority": "high",
        "category": "resolution",
        "steps": [
            {
                "title": f"Step {i}",
                "description": f"Do thing {i}",
                "type": "communication" if i == 1 else "investigation",
                "is_required": True,
                "estimated_duration": "5 minutes",
                "resources": None,
            }
            for i in range(1, steps + 1)
        ],
        "estimated_time": "20 minutes",
        "required_skills": ["Customer Service"],
        "success_metrics": ["Customer can log in"],
        "reasoning": "Login failures are usually stale credentials",
        "confidence": 0.8,
    }
    plan.update(overrides)
    return plan


def make_section(title: str, category: str = "Customer Service", priority: str = "medium", **overrides) -> dict:
    section = {
        "title": title,
        "content": f"Procedure for {title.lower()}.",
        "category": category,
        "keywords": [],
        "priority": priority,
    }
    section.update(overrides)
    return section


@pytest.fixture
def negative_urgent_sentiment():
    return SentimentAnalysis(
        sentiment="negative",
        score=0.1,
        confidence=0.9,
        emotions=["angry", "frustrated"],
        urgency="urgent",
        key_phrases=["broken", "refund"],
    )


@pytest.fixture
def positive_sentiment():
    return SentimentAnalysis(
        sentiment="positive",
        score=0.85,
        confidence=0.8,
        emotions=["happy"],
        urgency="low",
        key_phrases=["thank you"],
    )


@pytest.fixture
def sample_ticket():
    return Ticket(
        id="1001",
        subject="Cannot log in",
        description="I keep getting an error when I try to log in. This is broken!",
        customer="alice@example.com",
        priority="high",
        status="open",
        created_at="2025-01-15T10:30:00Z",
    )


@pytest.fixture
def negative_context(sample_ticket, negative_urgent_sentiment):
    return RecommendationContext(ticket=sample_ticket, sentiment_analysis=negative_urgent_sentiment)


@pytest.fixture
def positive_context(sample_ticket, positive_sentiment):
    return RecommendationContext(ticket=sample_ticket, sentiment_analysis=positive_sentiment)


@pytest.fixture
def manual_text():
    """Three short paragraphs; fits in a single chunk."""
    return (
        "Password resets: send the customer the reset link from the admin console.\n\n"
        "Refunds are handled by the billing team within 5 business days.\n\n"
        "Escalate angry customers to a team lead within one hour."
    )
