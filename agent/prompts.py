"""
Prompt Templates — Sentiment, Manual Extraction, Search, Action Plans
======================================================================
Every prompt the copilot sends to the model lives here, together with the
fixed word lists used by the keyword fallback for sentiment.

The builders return plain strings. Optional blocks (customer history,
ticket context, manual guidance) are omitted entirely when absent.
"""

from __future__ import annotations

from typing import Optional, Sequence

# ── Sentiment ────────────────────────────────────────────────────────────

SENTIMENT_PROMPT = """\
Analyze the sentiment of this customer support ticket:

Subject: {subject}
Description: {description}
{history_block}
Provide a comprehensive sentiment analysis including:
- Overall sentiment (positive, neutral, negative)
- Sentiment score (0-1, where 0 is very negative, 1 is very positive)
- Confidence level (0-1)
- Detected emotions (frustrated, angry, happy, confused, etc.)
- Urgency level based on language and tone (low, medium, high, urgent)
- Key phrases that influenced the sentiment
"""

# Keyword fallback lists. Matching is case-insensitive substring, so
# "problem" also hits "problems" and "thank" hits "thanks".
NEGATIVE_WORDS = (
    "problem", "issue", "broken", "error", "bug",
    "frustrated", "angry", "terrible", "awful",
)
POSITIVE_WORDS = (
    "great", "excellent", "love", "amazing", "perfect",
    "thank", "appreciate", "wonderful",
)

FALLBACK_EMOTIONS = {
    "negative": ["frustrated"],
    "positive": ["satisfied"],
    "neutral": ["neutral"],
}


def build_sentiment_prompt(
    subject: str, description: str, customer_history: Optional[str] = None
) -> str:
    history_block = f"Customer History: {customer_history}\n" if customer_history else ""
    return SENTIMENT_PROMPT.format(
        subject=subject, description=description, history_block=history_block
    )


# ── Manual section extraction ────────────────────────────────────────────

SECTION_EXTRACTION_PROMPT = """\
Analyze this section of an operations manual and extract structured information:

Text: {chunk}

Extract:
- A clear, descriptive title for this section
- The main content (cleaned and formatted)
- A category (e.g., "Customer Service", "Technical Support", "Billing", "Escalation", "General")
- Relevant keywords for searching
- Priority level (low, medium, high) based on how critical this information is for customer support
"""


def build_section_prompt(chunk: str) -> str:
    return SECTION_EXTRACTION_PROMPT.format(chunk=chunk)


# ── Manual search ranking ────────────────────────────────────────────────

SEARCH_PROMPT = """\
Find the most relevant sections from this operations manual for the following query:

Query: {query}
{context_block}
Available sections:
{sections_block}

Return the section numbers (1-based) that are most relevant, ranked by relevance.
Consider the ticket context, sentiment, and urgency when ranking.
"""

SEARCH_CONTEXT_BLOCK = """
Ticket Context:
- Subject: {subject}
- Description: {description}
- Sentiment: {sentiment}
- Urgency: {urgency}
"""

SECTION_PREVIEW_CHARS = 200


def build_search_prompt(query, sections: Sequence) -> str:
    """Prompt listing every section with a short preview.

    ``query`` is a ManualQuery; ``sections`` are ManualSection objects.
    """
    context_block = ""
    if query.ticket_context:
        ctx = query.ticket_context
        context_block = SEARCH_CONTEXT_BLOCK.format(
            subject=ctx.subject,
            description=ctx.description,
            sentiment=ctx.sentiment,
            urgency=ctx.urgency,
        )

    entries = []
    for index, section in enumerate(sections, 1):
        entries.append(
            f"{index}. {section.title} (Category: {section.category}, Priority: {section.priority})\n"
            f"Keywords: {', '.join(section.keywords)}\n"
            f"Content preview: {section.content[:SECTION_PREVIEW_CHARS]}..."
        )

    return SEARCH_PROMPT.format(
        query=query.query,
        context_block=context_block,
        sections_block="\n\n".join(entries),
    )


# ── Action recommendations ───────────────────────────────────────────────

RECOMMENDATION_PROMPT = """\
As an expert customer service AI, analyze this support ticket and generate 2-3 different action recommendations:

TICKET DETAILS:
- ID: {ticket.id}
- Subject: {ticket.subject}
- Description: {ticket.description}
- Customer: {ticket.customer}
- Priority: {ticket.priority}
- Status: {ticket.status}

SENTIMENT ANALYSIS:
- Sentiment: {sentiment.sentiment} ({score_pct}%)
- Emotions: {emotions}
- Urgency: {sentiment.urgency}
- Confidence: {confidence_pct}%
- Key phrases: {key_phrases}
{history_block}{guidance_block}
Generate recommendations that:
1. Address the customer's immediate needs based on sentiment and urgency
2. Follow company procedures when available
3. Provide clear, actionable steps
4. Consider the customer's emotional state
5. Include appropriate escalation paths
6. Specify required skills and estimated time

Provide different approaches (e.g., immediate resolution, investigation-first, escalation-focused).
"""

HISTORY_BLOCK = """
CUSTOMER HISTORY:
- Previous tickets: {previous_tickets}
- Satisfaction score: {satisfaction}
- Preferred channel: {channel}
"""

ALTERNATIVE_SUFFIX = (
    "\n\nGenerate an ALTERNATIVE approach that differs from the primary "
    "recommendation in strategy or priority."
)

ESCALATION_PROMPT = """\
Generate an ESCALATION-focused recommendation for this high-priority negative sentiment ticket:

Ticket: {subject}
Sentiment: {sentiment} ({urgency} urgency)
Emotions: {emotions}

Focus on:
- Immediate escalation paths
- Damage control measures
- Senior team involvement
- Customer retention strategies
- Rapid resolution approaches
"""


def build_recommendation_prompt(context, guidance: Sequence) -> str:
    """Full ticket + sentiment prompt shared by the primary and alternative plans."""
    sentiment = context.sentiment_analysis

    history_block = ""
    if context.customer_history:
        history = context.customer_history
        history_block = HISTORY_BLOCK.format(
            previous_tickets=history.previous_tickets,
            satisfaction=history.satisfaction_score or "N/A",
            channel=history.preferred_channel or "N/A",
        )

    guidance_block = ""
    if guidance:
        lines = [
            f"- {result.section.title}: {result.section.content[:SECTION_PREVIEW_CHARS]}..."
            for result in guidance
        ]
        guidance_block = "\nRelevant company procedures:\n" + "\n".join(lines) + "\n"

    return RECOMMENDATION_PROMPT.format(
        ticket=context.ticket,
        sentiment=sentiment,
        score_pct=round(sentiment.score * 100),
        confidence_pct=round(sentiment.confidence * 100),
        emotions=", ".join(sentiment.emotions),
        key_phrases=", ".join(sentiment.key_phrases),
        history_block=history_block,
        guidance_block=guidance_block,
    )


def build_escalation_prompt(context) -> str:
    sentiment = context.sentiment_analysis
    return ESCALATION_PROMPT.format(
        subject=context.ticket.subject,
        sentiment=sentiment.sentiment,
        urgency=sentiment.urgency,
        emotions=", ".join(sentiment.emotions),
    )
