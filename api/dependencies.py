"""
Service Wiring — Shared Copilot Components
===========================================
One generator, one sentiment analyzer, one manual processor and one
recommendation engine per process. Routes receive them through
``Depends(get_services)``; tests install their own with set_services().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from agent.action_recommender import ActionRecommendationEngine
from agent.generation import StructuredGenerator
from agent.operations_manual import OperationsManualProcessor
from agent.sentiment_analyzer import SentimentAnalyzer


@dataclass
class CopilotServices:
    generator: StructuredGenerator
    sentiment_analyzer: SentimentAnalyzer
    manual_processor: OperationsManualProcessor
    recommendation_engine: ActionRecommendationEngine


def build_services(generator: Optional[StructuredGenerator] = None, **overrides) -> CopilotServices:
    """Build the component graph around ``generator``.

    ``overrides`` are passed to the analyzer and processor constructors
    (``batch_delay``, ``extraction_delay``...) when they accept them.
    """
    generator = generator or StructuredGenerator()

    analyzer_kwargs = {k: overrides[k] for k in ("batch_size", "batch_delay") if k in overrides}
    manual_kwargs = {k: overrides[k] for k in ("chunk_size", "extraction_delay") if k in overrides}

    manual_processor = OperationsManualProcessor(generator, **manual_kwargs)
    return CopilotServices(
        generator=generator,
        sentiment_analyzer=SentimentAnalyzer(generator, **analyzer_kwargs),
        manual_processor=manual_processor,
        recommendation_engine=ActionRecommendationEngine(generator, manual_processor),
    )


_services: Optional[CopilotServices] = None


def set_services(services: Optional[CopilotServices]) -> None:
    global _services
    _services = services


def get_services() -> CopilotServices:
    global _services
    if _services is None:
        _services = build_services()
    return _services
