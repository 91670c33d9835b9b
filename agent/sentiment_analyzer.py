"""
Sentiment Analyzer — Ticket Sentiment, Urgency, Emotions
=========================================================
Classifies a ticket's subject + description with the language model,
falling back to a keyword tally when generation fails.

Usage:
    from agent.sentiment_analyzer import SentimentAnalyzer

    analyzer = SentimentAnalyzer(generator)
    analysis = await analyzer.analyze_ticket("Login broken", "I get an error...")
    results = await analyzer.analyze_batch(tickets)   # {ticket_id: analysis}

Batching:
    Tickets are analyzed in groups of SENTIMENT_BATCH_SIZE. A group runs
    fully in parallel and must finish before the next one starts; a fixed
    pause separates groups (none after the last) to stay under rate limits.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ValidationError

from .generation import GenerationError, StructuredGenerator
from .models import Outcome, SentimentAnalysis, TicketInput
from .prompts import (
    FALLBACK_EMOTIONS,
    NEGATIVE_WORDS,
    POSITIVE_WORDS,
    build_sentiment_prompt,
)

logger = logging.getLogger("agent.sentiment")

# ── Configuration ────────────────────────────────────────────────────────

SENTIMENT_BATCH_SIZE = int(os.environ.get("SENTIMENT_BATCH_SIZE", "5"))
SENTIMENT_BATCH_DELAY_SECONDS = float(os.environ.get("SENTIMENT_BATCH_DELAY_SECONDS", "1.0"))


class SentimentSchema(BaseModel):
    """Generation schema for one ticket's sentiment."""

    sentiment: Literal["positive", "neutral", "negative"]
    score: float
    confidence: float
    emotions: list[str]
    urgency: Literal["low", "medium", "high", "urgent"]
    key_phrases: list[str]


def keyword_sentiment(subject: str, description: str) -> SentimentAnalysis:
    """Deterministic fallback: tally fixed positive/negative words.

    The side with strictly more distinct hits wins; a tie is neutral.
    """
    text = f"{subject} {description}".lower()

    negative_hits = [word for word in NEGATIVE_WORDS if word in text]
    positive_hits = [word for word in POSITIVE_WORDS if word in text]

    if len(positive_hits) > len(negative_hits):
        sentiment, score = "positive", 0.7
    elif len(negative_hits) > len(positive_hits):
        sentiment, score = "negative", 0.3
    else:
        sentiment, score = "neutral", 0.5

    return SentimentAnalysis(
        sentiment=sentiment,
        score=score,
        confidence=0.6,
        emotions=list(FALLBACK_EMOTIONS[sentiment]),
        urgency="high" if len(negative_hits) > 2 else "medium",
        key_phrases=negative_hits + positive_hits,
    )


class SentimentAnalyzer:
    def __init__(
        self,
        generator: StructuredGenerator,
        batch_size: int = SENTIMENT_BATCH_SIZE,
        batch_delay: float = SENTIMENT_BATCH_DELAY_SECONDS,
    ):
        self.generator = generator
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay

    async def analyze(
        self, subject: str, description: str, customer_history: Optional[str] = None
    ) -> Outcome[SentimentAnalysis]:
        """Analyze one ticket, reporting whether the model or the fallback answered."""
        prompt = build_sentiment_prompt(subject, description, customer_history)
        try:
            generated = await self.generator.generate(SentimentSchema, prompt)
            analysis = SentimentAnalysis.model_validate(generated.model_dump())
        except (GenerationError, ValidationError) as e:
            logger.error(f"Sentiment analysis failed, using keyword fallback: {e}")
            return Outcome.fallback(keyword_sentiment(subject, description), error=str(e))

        return Outcome.generated(analysis)

    async def analyze_ticket(
        self, subject: str, description: str, customer_history: Optional[str] = None
    ) -> SentimentAnalysis:
        outcome = await self.analyze(subject, description, customer_history)
        return outcome.value

    async def analyze_batch(
        self, tickets: Iterable[TicketInput]
    ) -> dict[str, SentimentAnalysis]:
        tickets = list(tickets)
        results: dict[str, SentimentAnalysis] = {}

        for start in range(0, len(tickets), self.batch_size):
            batch = tickets[start:start + self.batch_size]
            analyses = await asyncio.gather(
                *(self.analyze_ticket(t.subject, t.description) for t in batch)
            )
            for ticket, analysis in zip(batch, analyses):
                results[ticket.id] = analysis

            if start + self.batch_size < len(tickets):
                await asyncio.sleep(self.batch_delay)

        logger.info(f"Analyzed sentiment for {len(results)} tickets")
        return results
