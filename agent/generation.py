"""
Structured Generation Client — OpenAI Agents SDK
=================================================
The single seam between the copilot and the language model.

Two calls:
  - generate(schema, prompt)  → an instance of the pydantic ``schema``
  - generate_text(prompt)     → free text (used for section ranking)

Both raise GenerationError and nothing else. Every component that calls
the model catches GenerationError and substitutes its own fallback, so
the rest of the system never sees SDK or transport exceptions.

Environment:
  OPENAI_MODEL    — model name (default: gpt-4o)
  OPENAI_API_KEY  — picked up by the SDK; also used for an explicit client
  OPENAI_BASE_URL — optional OpenAI-compatible endpoint
"""

from __future__ import annotations

import logging
import os
from typing import Optional, TypeVar

from agents import Agent, Runner, set_default_openai_client
from openai import AsyncOpenAI
from pydantic import BaseModel

logger = logging.getLogger("agent.generation")

# ── Configuration ────────────────────────────────────────────────────────

OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "")

GENERATOR_INSTRUCTIONS = (
    "You are an assistant embedded in a customer support dashboard. "
    "Follow the request exactly and answer only with what is asked for."
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GenerationError(Exception):
    """The model call failed or returned output that does not fit the schema."""


def configure_openai_client() -> None:
    """Register an explicit AsyncOpenAI client when a custom endpoint is set.

    Without OPENAI_BASE_URL the SDK builds its own client from the
    environment, so there is nothing to do.
    """
    if not OPENAI_BASE_URL:
        return
    client = AsyncOpenAI(api_key=OPENAI_API_KEY or None, base_url=OPENAI_BASE_URL)
    set_default_openai_client(client, use_for_tracing=False)
    logger.info(f"OpenAI client configured for {OPENAI_BASE_URL}")


class StructuredGenerator:
    """Runs one-shot Agents SDK runs for schema-bound or free-text output."""

    def __init__(self, model: Optional[str] = None):
        self.model = model or OPENAI_MODEL

    async def generate(self, schema: type[SchemaT], prompt: str) -> SchemaT:
        agent = Agent(
            name=f"{schema.__name__} generator",
            model=self.model,
            instructions=GENERATOR_INSTRUCTIONS,
            output_type=schema,
        )
        output = await self._run(agent, prompt)

        if not isinstance(output, schema):
            raise GenerationError(
                f"Expected {schema.__name__}, got {type(output).__name__}"
            )
        return output

    async def generate_text(self, prompt: str) -> str:
        agent = Agent(
            name="Text generator",
            model=self.model,
            instructions=GENERATOR_INSTRUCTIONS,
        )
        output = await self._run(agent, prompt)

        text = str(output or "").strip()
        if not text:
            raise GenerationError("Model returned an empty response")
        return text

    async def _run(self, agent: Agent, prompt: str):
        try:
            result = await Runner.run(agent, input=prompt)
        except Exception as e:
            logger.debug(f"Generation run failed for {agent.name}: {e}")
            raise GenerationError(str(e)) from e
        return result.final_output
