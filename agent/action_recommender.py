"""
Action Recommendation Engine — Steppable Action Plans per Ticket
=================================================================
Top-level orchestrator: ticket + sentiment (+ manual guidance, + customer
history) → 2-3 structured action plans.

Workflow (generate_recommendations):
  1. If no guidance was supplied and a manual exists, search it
     (context.manual_id if given, otherwise the first uploaded manual)
  2. Primary plan        — full ticket/sentiment/guidance prompt
  3. Alternative plan    — same prompt, asked to differ in strategy
  4. Escalation plan     — only for negative sentiment with high/urgent urgency
  A plan that fails to generate is dropped. If the whole flow fails, a
  single static plan is returned instead.

The latest plans for a ticket replace any earlier ones. Step execution is
a lookup only; completion state lives in the dashboard, not here.
"""

from __future__ import annotations

import logging
import time
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from database.store import VolatileStore

from .generation import GenerationError, StructuredGenerator
from .models import (
    ActionRecommendation,
    ActionStep,
    ExecutionResult,
    ManualQuery,
    ManualSearchResult,
    Outcome,
    RecommendationContext,
    RecommendationFeedback,
    TicketContext,
)
from .operations_manual import OperationsManualProcessor
from .prompts import (
    ALTERNATIVE_SUFFIX,
    build_escalation_prompt,
    build_recommendation_prompt,
)

logger = logging.getLogger("agent.recommender")

Variant = Literal["primary", "alternative", "escalation"]

ESCALATION_URGENCIES = ("high", "urgent")


class ActionStepSchema(BaseModel):
    title: str
    description: str
    type: Literal["communication", "investigation", "escalation", "documentation", "resolution"]
    is_required: bool
    estimated_duration: str
    resources: Optional[list[str]] = None


class ActionPlanSchema(BaseModel):
    """Generation schema for one action plan."""

    title: str
    description: str
    priority: Literal["low", "medium", "high", "urgent"]
    category: Literal["immediate", "follow-up", "escalation", "information", "resolution"]
    steps: list[ActionStepSchema]
    estimated_time: str
    required_skills: list[str]
    success_metrics: list[str]
    reasoning: str
    confidence: float


def _recommendation_id(ticket_id: str, variant: str) -> str:
    return f"rec-{ticket_id}-{variant}-{time.time_ns() // 1000}"


def number_steps(steps: list[dict]) -> list[ActionStep]:
    """Assign ``step-N`` ids and 1-based order from list position."""
    return [
        ActionStep(id=f"step-{index}", order=index, **step)
        for index, step in enumerate(steps, 1)
    ]


def fallback_recommendation(context: RecommendationContext) -> ActionRecommendation:
    """Static plan used when the generation flow as a whole fails."""
    sentiment = context.sentiment_analysis

    steps = [
        {
            "title": "Acknowledge the ticket",
            "description": "Send initial response acknowledging receipt and setting expectations",
            "type": "communication",
            "is_required": True,
            "estimated_duration": "5 minutes",
        },
        {
            "title": "Investigate the issue",
            "description": "Gather additional information and research the problem",
            "type": "investigation",
            "is_required": True,
            "estimated_duration": "15 minutes",
        },
    ]
    if sentiment.sentiment == "negative":
        steps.insert(0, {
            "title": "Priority handling",
            "description": "Handle with extra care due to negative sentiment",
            "type": "communication",
            "is_required": True,
            "estimated_duration": "2 minutes",
        })

    return ActionRecommendation(
        id=_recommendation_id(context.ticket.id, "fallback"),
        title="Standard Support Response",
        description="Follow standard support procedures for this type of ticket",
        priority="urgent" if sentiment.urgency == "urgent" else "medium",
        category="immediate",
        steps=number_steps(steps),
        estimated_time="20-30 minutes",
        required_skills=["Customer Service", "Problem Solving"],
        success_metrics=["Customer response", "Issue resolution"],
        reasoning="Fallback recommendation based on standard procedures",
        confidence=0.6,
        manual_references=[],
    )


class ActionRecommendationEngine:
    def __init__(
        self,
        generator: StructuredGenerator,
        manual_processor: OperationsManualProcessor,
        store: Optional[VolatileStore[list[ActionRecommendation]]] = None,
    ):
        self.generator = generator
        self.manual_processor = manual_processor
        self.recommendations: VolatileStore[list[ActionRecommendation]] = (
            store or VolatileStore("recommendations")
        )

    # ── Generation ───────────────────────────────────────────────────

    async def generate(self, context: RecommendationContext) -> Outcome[list[ActionRecommendation]]:
        try:
            guidance = context.manual_guidance
            if guidance is None:
                guidance = await self._find_guidance(context)

            recommendations = await self._generate_options(context, guidance or [])
            self.recommendations.put(context.ticket.id, recommendations)
        except Exception as e:
            logger.error(
                f"Error generating recommendations for ticket {context.ticket.id}: {e}",
                exc_info=True,
            )
            return Outcome.fallback([fallback_recommendation(context)], error=str(e))

        logger.info(
            f"Generated {len(recommendations)} recommendations for ticket {context.ticket.id}"
        )
        return Outcome.generated(recommendations)

    async def generate_recommendations(self, context: RecommendationContext) -> list[ActionRecommendation]:
        outcome = await self.generate(context)
        return outcome.value

    async def _find_guidance(self, context: RecommendationContext) -> list[ManualSearchResult]:
        if context.manual_id:
            manual_id = context.manual_id
        else:
            manual = self.manual_processor.manuals.first()
            if manual is None:
                return []
            manual_id = manual.id

        sentiment = context.sentiment_analysis
        query = ManualQuery(
            query=f"{context.ticket.subject} {sentiment.sentiment} {sentiment.urgency}",
            ticket_context=TicketContext(
                subject=context.ticket.subject,
                description=context.ticket.description,
                sentiment=sentiment.sentiment,
                urgency=sentiment.urgency,
            ),
        )
        return await self.manual_processor.search_manual(manual_id, query)

    async def _generate_options(
        self, context: RecommendationContext, guidance: list[ManualSearchResult]
    ) -> list[ActionRecommendation]:
        prompt = build_recommendation_prompt(context, guidance)
        references = [result.section.id for result in guidance]

        candidates = [
            await self._generate_single(prompt, context, "primary", references),
            await self._generate_single(prompt + ALTERNATIVE_SUFFIX, context, "alternative", references),
        ]

        sentiment = context.sentiment_analysis
        if sentiment.sentiment == "negative" and sentiment.urgency in ESCALATION_URGENCIES:
            candidates.append(
                await self._generate_single(build_escalation_prompt(context), context, "escalation", [])
            )

        return [rec for rec in candidates if rec is not None]

    async def _generate_single(
        self,
        prompt: str,
        context: RecommendationContext,
        variant: Variant,
        references: list[str],
    ) -> Optional[ActionRecommendation]:
        try:
            plan = await self.generator.generate(ActionPlanSchema, prompt)
            return ActionRecommendation(
                id=_recommendation_id(context.ticket.id, variant),
                title=plan.title,
                description=plan.description,
                priority=plan.priority,
                category=plan.category,
                steps=number_steps([step.model_dump() for step in plan.steps]),
                estimated_time=plan.estimated_time,
                required_skills=plan.required_skills,
                success_metrics=plan.success_metrics,
                reasoning=plan.reasoning,
                confidence=plan.confidence,
                manual_references=list(references),
            )
        except (GenerationError, ValidationError) as e:
            logger.error(f"Error generating {variant} recommendation: {e}")
            return None

    # ── Lookups and execution ────────────────────────────────────────

    def get_recommendations(self, ticket_id: str) -> list[ActionRecommendation]:
        return self.recommendations.get(ticket_id) or []

    async def execute_action(self, ticket_id: str, recommendation_id: str, step_id: str) -> ExecutionResult:
        recommendations = self.recommendations.get(ticket_id)
        if recommendations is None:
            return ExecutionResult(success=False, message="No recommendations found for this ticket")

        recommendation = next((r for r in recommendations if r.id == recommendation_id), None)
        if recommendation is None:
            return ExecutionResult(success=False, message="Recommendation not found")

        index = next((i for i, s in enumerate(recommendation.steps) if s.id == step_id), None)
        if index is None:
            return ExecutionResult(success=False, message="Step not found")

        step = recommendation.steps[index]
        logger.info(f"Executing step: {step.title} for ticket {ticket_id}")

        next_step = recommendation.steps[index + 1] if index + 1 < len(recommendation.steps) else None
        return ExecutionResult(
            success=True,
            message=f"Successfully executed: {step.title}",
            next_step=next_step,
        )

    async def update_recommendation_feedback(
        self, ticket_id: str, recommendation_id: str, feedback: RecommendationFeedback
    ) -> bool:
        # Accepted and logged only; there is no feedback sink yet.
        logger.info(
            f"Feedback received for recommendation {recommendation_id} "
            f"(ticket {ticket_id}): {feedback.model_dump(exclude_none=True)}"
        )
        return True
