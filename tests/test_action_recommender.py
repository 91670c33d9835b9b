"""
Action Recommendation Engine Tests
===================================
Plan variants, manual guidance lookup, fallback plan, per-ticket storage,
step execution and feedback.

Run:
  pytest tests/test_action_recommender.py -v
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from agent.action_recommender import ActionRecommendationEngine, fallback_recommendation
from agent.generation import GenerationError
from agent.models import (
    CustomerHistory,
    ManualSearchResult,
    ManualSection,
    RecommendationContext,
    RecommendationFeedback,
    SentimentAnalysis,
)
from agent.operations_manual import OperationsManualProcessor
from conftest import make_plan, make_section


def _engine(generator) -> ActionRecommendationEngine:
    manuals = OperationsManualProcessor(generator, extraction_delay=0)
    return ActionRecommendationEngine(generator, manuals)


def _variants(recommendations) -> list[str]:
    return [rec.id.rsplit("-", 2)[1] for rec in recommendations]


# ═══════════════════════════════════════════════════════════════════════
# Plan Variants
# ═══════════════════════════════════════════════════════════════════════


class TestGenerateRecommendations:
    @pytest.mark.asyncio
    async def test_negative_urgent_adds_escalation(self, fake_generator, negative_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)

        recommendations = await engine.generate_recommendations(negative_context)

        assert _variants(recommendations) == ["primary", "alternative", "escalation"]
        assert all(rec.id.startswith("rec-1001-") for rec in recommendations)

    @pytest.mark.asyncio
    async def test_negative_high_adds_escalation(self, fake_generator, sample_ticket):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        sentiment = SentimentAnalysis(
            sentiment="negative", score=0.2, confidence=0.7, emotions=[], urgency="high", key_phrases=[]
        )
        engine = _engine(fake_generator)

        recommendations = await engine.generate_recommendations(
            RecommendationContext(ticket=sample_ticket, sentiment_analysis=sentiment)
        )

        assert "escalation" in _variants(recommendations)

    @pytest.mark.asyncio
    async def test_dashed_ticket_id_keeps_variant_in_id(self, fake_generator, negative_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        ticket = negative_context.ticket.model_copy(update={"id": "FD-001"})
        engine = _engine(fake_generator)

        recommendations = await engine.generate_recommendations(
            negative_context.model_copy(update={"ticket": ticket})
        )

        assert _variants(recommendations) == ["primary", "alternative", "escalation"]
        assert all(rec.id.startswith("rec-FD-001-") for rec in recommendations)
        assert len(engine.get_recommendations("FD-001")) == 3

    @pytest.mark.asyncio
    async def test_negative_medium_has_no_escalation(self, fake_generator, sample_ticket):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        sentiment = SentimentAnalysis(
            sentiment="negative", score=0.3, confidence=0.6, emotions=[], urgency="medium", key_phrases=[]
        )
        engine = _engine(fake_generator)

        recommendations = await engine.generate_recommendations(
            RecommendationContext(ticket=sample_ticket, sentiment_analysis=sentiment)
        )

        assert _variants(recommendations) == ["primary", "alternative"]

    @pytest.mark.asyncio
    async def test_positive_never_escalates(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)

        outcome = await engine.generate(positive_context)

        assert not outcome.is_fallback
        assert _variants(outcome.value) == ["primary", "alternative"]

    @pytest.mark.asyncio
    async def test_prompts_per_variant(self, fake_generator, negative_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)

        await engine.generate_recommendations(negative_context)

        primary, alternative, escalation = fake_generator.prompts_for("ActionPlanSchema")
        assert "TICKET DETAILS" in primary
        assert "- Sentiment: negative (10%)" in primary
        assert alternative.startswith(primary)
        assert "ALTERNATIVE approach" in alternative
        assert "ESCALATION-focused" in escalation
        assert "Sentiment: negative (urgent urgency)" in escalation

    @pytest.mark.asyncio
    async def test_failed_variant_is_dropped(self, fake_generator, negative_context):
        def script(prompt):
            if "ALTERNATIVE" in prompt:
                return GenerationError("timeout")
            return make_plan()

        fake_generator.structured["ActionPlanSchema"] = script
        engine = _engine(fake_generator)

        outcome = await engine.generate(negative_context)

        assert not outcome.is_fallback
        assert _variants(outcome.value) == ["primary", "escalation"]

    @pytest.mark.asyncio
    async def test_invalid_confidence_drops_variant(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan(confidence=3.0)
        engine = _engine(fake_generator)

        assert await engine.generate_recommendations(positive_context) == []

    @pytest.mark.asyncio
    async def test_steps_numbered_by_position(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan(steps=4)
        engine = _engine(fake_generator)

        primary = (await engine.generate_recommendations(positive_context))[0]

        assert [s.id for s in primary.steps] == ["step-1", "step-2", "step-3", "step-4"]
        assert [s.order for s in primary.steps] == [1, 2, 3, 4]
        assert primary.steps[0].resources is None

    @pytest.mark.asyncio
    async def test_customer_history_in_prompt(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        context = positive_context.model_copy(
            update={"customer_history": CustomerHistory(previous_tickets=4, preferred_channel="email")}
        )
        engine = _engine(fake_generator)

        await engine.generate_recommendations(context)

        prompt = fake_generator.prompts_for("ActionPlanSchema")[0]
        assert "- Previous tickets: 4" in prompt
        assert "- Satisfaction score: N/A" in prompt
        assert "- Preferred channel: email" in prompt


# ═══════════════════════════════════════════════════════════════════════
# Manual Guidance
# ═══════════════════════════════════════════════════════════════════════


class TestManualGuidance:
    @pytest.mark.asyncio
    async def test_no_manual_no_search(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)

        await engine.generate_recommendations(positive_context)

        assert fake_generator.prompts_for("text") == []

    @pytest.mark.asyncio
    async def test_searches_first_manual(self, fake_generator, negative_context):
        fake_generator.structured["SectionSchema"] = make_section("Login troubleshooting")
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        fake_generator.text = "1"
        engine = _engine(fake_generator)
        await engine.manual_processor.process_manual_text("manual-a", "A", "login help")
        await engine.manual_processor.process_manual_text("manual-b", "B", "other help")

        with patch.object(
            engine.manual_processor, "search_manual", wraps=engine.manual_processor.search_manual
        ) as spy:
            recommendations = await engine.generate_recommendations(negative_context)

        manual_id, query = spy.call_args.args
        assert manual_id == "manual-a"
        assert query.query == "Cannot log in negative urgent"
        assert query.ticket_context.urgency == "urgent"

        primary = recommendations[0]
        assert primary.manual_references == ["section-1"]
        assert "Relevant company procedures:" in fake_generator.prompts_for("ActionPlanSchema")[0]
        escalation = recommendations[-1]
        assert escalation.manual_references == []

    @pytest.mark.asyncio
    async def test_explicit_manual_id(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        fake_generator.text = "1"
        engine = _engine(fake_generator)
        await engine.manual_processor.process_manual_text("manual-a", "A", "alpha")
        await engine.manual_processor.process_manual_text("manual-b", "B", "beta")

        context = positive_context.model_copy(update={"manual_id": "manual-b"})
        with patch.object(engine.manual_processor, "search_manual", new_callable=AsyncMock, return_value=[]) as mock_search:
            await engine.generate_recommendations(context)

        assert mock_search.call_args.args[0] == "manual-b"

    @pytest.mark.asyncio
    async def test_supplied_guidance_skips_search(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)
        await engine.manual_processor.process_manual_text("manual-a", "A", "alpha")

        section = ManualSection(
            id="section-7", title="Refunds", content="Refund within 5 days", category="Billing",
        )
        context = positive_context.model_copy(
            update={"manual_guidance": [ManualSearchResult(section=section, relevance_score=0.9)]}
        )
        with patch.object(engine.manual_processor, "search_manual", new_callable=AsyncMock) as mock_search:
            recommendations = await engine.generate_recommendations(context)

        mock_search.assert_not_called()
        assert recommendations[0].manual_references == ["section-7"]
        assert "- Refunds: Refund within 5 days..." in fake_generator.prompts_for("ActionPlanSchema")[0]


# ═══════════════════════════════════════════════════════════════════════
# Fallback Plan
# ═══════════════════════════════════════════════════════════════════════


class TestFallbackRecommendation:
    @pytest.mark.asyncio
    async def test_flow_failure_returns_fallback(self, fake_generator, negative_context):
        engine = _engine(fake_generator)
        await engine.manual_processor.process_manual_text("manual-a", "A", "alpha")

        with patch.object(engine.manual_processor, "search_manual", side_effect=RuntimeError("boom")):
            outcome = await engine.generate(negative_context)

        assert outcome.is_fallback
        (plan,) = outcome.value
        assert "-fallback-" in plan.id
        assert plan.priority == "urgent"
        assert plan.confidence == 0.6
        assert [s.title for s in plan.steps] == [
            "Priority handling", "Acknowledge the ticket", "Investigate the issue",
        ]
        assert [s.order for s in plan.steps] == [1, 2, 3]
        assert [s.id for s in plan.steps] == ["step-1", "step-2", "step-3"]

    def test_non_negative_fallback_has_two_steps(self, positive_context):
        plan = fallback_recommendation(positive_context)

        assert plan.priority == "medium"
        assert [s.title for s in plan.steps] == ["Acknowledge the ticket", "Investigate the issue"]


# ═══════════════════════════════════════════════════════════════════════
# Storage, Execution, Feedback
# ═══════════════════════════════════════════════════════════════════════


class TestExecution:
    @pytest.mark.asyncio
    async def test_latest_generation_replaces_previous(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan(title="First")
        engine = _engine(fake_generator)
        await engine.generate_recommendations(positive_context)

        fake_generator.structured["ActionPlanSchema"] = make_plan(title="Second")
        await engine.generate_recommendations(positive_context)

        stored = engine.get_recommendations("1001")
        assert [r.title for r in stored] == ["Second", "Second"]

    def test_unknown_ticket_has_no_recommendations(self, fake_generator):
        assert _engine(fake_generator).get_recommendations("nope") == []

    @pytest.mark.asyncio
    async def test_execute_returns_next_step(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan(steps=3)
        engine = _engine(fake_generator)
        rec = (await engine.generate_recommendations(positive_context))[0]

        result = await engine.execute_action("1001", rec.id, "step-1")

        assert result.success is True
        assert result.message == "Successfully executed: Step 1"
        assert result.next_step.id == "step-2"

    @pytest.mark.asyncio
    async def test_execute_last_step_has_no_next(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan(steps=2)
        engine = _engine(fake_generator)
        rec = (await engine.generate_recommendations(positive_context))[0]

        result = await engine.execute_action("1001", rec.id, "step-2")

        assert result.success is True
        assert result.next_step is None

    @pytest.mark.asyncio
    async def test_execute_not_found_levels(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)
        rec = (await engine.generate_recommendations(positive_context))[0]

        missing_ticket = await engine.execute_action("9999", rec.id, "step-1")
        missing_rec = await engine.execute_action("1001", "rec-nope", "step-1")
        missing_step = await engine.execute_action("1001", rec.id, "step-99")

        assert missing_ticket.success is False
        assert missing_ticket.message == "No recommendations found for this ticket"
        assert missing_rec.message == "Recommendation not found"
        assert missing_step.success is False
        assert missing_step.message == "Step not found"

    @pytest.mark.asyncio
    async def test_execute_does_not_mutate_steps(self, fake_generator, positive_context):
        fake_generator.structured["ActionPlanSchema"] = make_plan()
        engine = _engine(fake_generator)
        rec = (await engine.generate_recommendations(positive_context))[0]
        before = engine.get_recommendations("1001")[0].model_dump()

        await engine.execute_action("1001", rec.id, "step-1")

        assert engine.get_recommendations("1001")[0].model_dump() == before

    @pytest.mark.asyncio
    async def test_feedback_always_accepted(self, fake_generator):
        engine = _engine(fake_generator)
        feedback = RecommendationFeedback(effectiveness=4, notes="worked")

        assert await engine.update_recommendation_feedback("unknown", "rec-x", feedback) is True

    @pytest.mark.asyncio
    async def test_feedback_without_effectiveness_accepted(self, fake_generator):
        engine = _engine(fake_generator)

        assert await engine.update_recommendation_feedback(
            "1001", "rec-x", RecommendationFeedback(notes="ok")
        ) is True
