"""
Operations Manual Processor — Ingestion and Contextual Search
==============================================================
Turns an uploaded operations manual into searchable sections, then ranks
sections against a query plus optional ticket context.

Ingestion (process_manual_text):
  1. Split text on blank lines into paragraphs
  2. Greedily pack paragraphs into chunks of at most MANUAL_CHUNK_SIZE chars
     (a single oversized paragraph becomes its own chunk)
  3. Ask the model for title/content/category/keywords/priority per chunk;
     a failed chunk becomes a raw "Section N" fallback section
  4. Store the manual under its id (ready or error), replacing any previous one

Search (search_manual):
  1. Ask the model, in free text, for the most relevant section numbers
  2. Take the first five distinct positive integers in its answer
  3. Score each hit locally (relevance_score) and sort descending
  If the ranking call fails, every section is scored locally instead and
  the top five scoring above 0.1 are returned.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from database.store import VolatileStore

from .generation import GenerationError, StructuredGenerator
from .models import (
    ManualQuery,
    ManualSearchResult,
    ManualSection,
    Outcome,
    ProcessedManual,
    utc_now,
)
from .prompts import build_search_prompt, build_section_prompt

logger = logging.getLogger("agent.manual")

# ── Configuration ────────────────────────────────────────────────────────

MANUAL_CHUNK_SIZE = int(os.environ.get("MANUAL_CHUNK_SIZE", "2000"))
MANUAL_EXTRACTION_DELAY_SECONDS = float(
    os.environ.get("MANUAL_EXTRACTION_DELAY_SECONDS", "0.5")
)

MAX_SEARCH_RESULTS = 5
FALLBACK_MIN_SCORE = 0.1

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_INTEGER_TOKEN = re.compile(r"\b(\d+)\b")


class SectionSchema(BaseModel):
    """Generation schema for one extracted manual section."""

    title: str
    content: str
    category: str
    keywords: list[str]
    priority: Literal["low", "medium", "high"]


# ── Text helpers ─────────────────────────────────────────────────────────


def split_into_chunks(text: str, max_chunk_size: int = MANUAL_CHUNK_SIZE) -> list[str]:
    """Pack blank-line-separated paragraphs into chunks of bounded size.

    The size check ignores the paragraph separator, and a paragraph longer
    than ``max_chunk_size`` is emitted as its own chunk rather than split.
    """
    chunks: list[str] = []
    current = ""

    for paragraph in _PARAGRAPH_BREAK.split(text):
        if current and len(current) + len(paragraph) > max_chunk_size:
            chunks.append(current.strip())
            current = paragraph
        else:
            current += ("\n\n" if current else "") + paragraph

    if current.strip():
        chunks.append(current.strip())

    return chunks


def extract_section_numbers(text: str, limit: int = MAX_SEARCH_RESULTS) -> list[int]:
    """First ``limit`` distinct positive integers, in order of appearance."""
    numbers: list[int] = []
    for token in _INTEGER_TOKEN.findall(text):
        number = int(token)
        if number > 0 and number not in numbers:
            numbers.append(number)
    return numbers[:limit]


def find_matched_keywords(section: ManualSection, query: str) -> list[str]:
    query_lower = query.lower()
    return [kw for kw in section.keywords if kw.lower() in query_lower]


def relevance_score(section: ManualSection, query: ManualQuery) -> float:
    """Additive relevance in [0, 1].

    title match 0.4, content word coverage 0.3, keyword coverage 0.2,
    own priority 0.1/0.05, urgent+high 0.1, negative+Escalation 0.1.
    """
    query_lower = query.query.lower()
    title_lower = section.title.lower()
    content_lower = section.content.lower()

    score = 0.0

    if query_lower in title_lower:
        score += 0.4

    query_words = re.split(r"\s+", query_lower)
    matched_words = [word for word in query_words if word in content_lower]
    score += (len(matched_words) / len(query_words)) * 0.3

    matched_keywords = find_matched_keywords(section, query.query)
    score += (len(matched_keywords) / max(len(section.keywords), 1)) * 0.2

    if section.priority == "high":
        score += 0.1
    elif section.priority == "medium":
        score += 0.05

    ctx = query.ticket_context
    if ctx:
        if ctx.urgency == "urgent" and section.priority == "high":
            score += 0.1
        if ctx.sentiment == "negative" and section.category == "Escalation":
            score += 0.1

    return min(score, 1.0)


def _search_result(section: ManualSection, query: ManualQuery) -> ManualSearchResult:
    return ManualSearchResult(
        section=section,
        relevance_score=relevance_score(section, query),
        matched_keywords=find_matched_keywords(section, query.query),
    )


# ── Processor ────────────────────────────────────────────────────────────


class OperationsManualProcessor:
    """Owns the manual table. No other component writes to it."""

    def __init__(
        self,
        generator: StructuredGenerator,
        chunk_size: int = MANUAL_CHUNK_SIZE,
        extraction_delay: float = MANUAL_EXTRACTION_DELAY_SECONDS,
        store: Optional[VolatileStore[ProcessedManual]] = None,
    ):
        self.generator = generator
        self.chunk_size = chunk_size
        self.extraction_delay = extraction_delay
        self.manuals: VolatileStore[ProcessedManual] = store or VolatileStore("manuals")

    # ── Ingestion ────────────────────────────────────────────────────

    async def process_manual_text(self, manual_id: str, name: str, text: str) -> ProcessedManual:
        uploaded_at = utc_now()
        try:
            sections = await self._extract_sections(text)
            status = "ready"
        except Exception as e:
            logger.error(f"Error processing manual {manual_id}: {e}", exc_info=True)
            sections, status = [], "error"

        manual = ProcessedManual(
            id=manual_id,
            name=name,
            sections=sections,
            uploaded_at=uploaded_at,
            processed_at=utc_now(),
            status=status,
        )
        self.manuals.put(manual_id, manual)

        logger.info(
            f"Manual processed: id={manual_id}, name={name!r}, "
            f"status={status}, sections={len(sections)}"
        )
        return manual

    async def _extract_sections(self, text: str) -> list[ManualSection]:
        chunks = split_into_chunks(text, self.chunk_size)
        sections: list[ManualSection] = []

        for number, chunk in enumerate(chunks, 1):
            try:
                extracted = await self.generator.generate(SectionSchema, build_section_prompt(chunk))
                section = ManualSection(
                    id=f"section-{number}",
                    title=extracted.title,
                    content=extracted.content,
                    category=extracted.category,
                    keywords=extracted.keywords,
                    priority=extracted.priority,
                )
            except (GenerationError, ValidationError) as e:
                logger.error(f"Error processing section {number}: {e}")
                sections.append(
                    ManualSection(
                        id=f"section-{number}",
                        title=f"Section {number}",
                        content=chunk,
                        category="General",
                        keywords=[],
                        priority="medium",
                    )
                )
                continue

            sections.append(section)
            await asyncio.sleep(self.extraction_delay)

        return sections

    # ── Search ───────────────────────────────────────────────────────

    async def search(self, manual_id: str, query: ManualQuery) -> Outcome[list[ManualSearchResult]]:
        manual = self.manuals.get(manual_id)
        if manual is None or manual.status != "ready":
            return Outcome.fallback([], error="manual not available")

        try:
            answer = await self.generator.generate_text(build_search_prompt(query, manual.sections))
        except GenerationError as e:
            logger.error(f"Error searching manual {manual_id}, using keyword fallback: {e}")
            return Outcome.fallback(self._fallback_search(manual, query), error=str(e))

        results = [
            _search_result(manual.sections[number - 1], query)
            for number in extract_section_numbers(answer)
            if number <= len(manual.sections)
        ]
        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return Outcome.generated(results)

    async def search_manual(self, manual_id: str, query: ManualQuery) -> list[ManualSearchResult]:
        outcome = await self.search(manual_id, query)
        return outcome.value

    def _fallback_search(self, manual: ProcessedManual, query: ManualQuery) -> list[ManualSearchResult]:
        results = [_search_result(section, query) for section in manual.sections]
        results = [r for r in results if r.relevance_score > FALLBACK_MIN_SCORE]
        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[:MAX_SEARCH_RESULTS]

    # ── Lookups ──────────────────────────────────────────────────────

    def get_manual(self, manual_id: str) -> Optional[ProcessedManual]:
        return self.manuals.get(manual_id)

    def get_all_manuals(self) -> list[ProcessedManual]:
        return self.manuals.values()

    def delete_manual(self, manual_id: str) -> bool:
        deleted = self.manuals.delete(manual_id)
        if deleted:
            logger.info(f"Manual deleted: {manual_id}")
        return deleted
