"""
Completion client — prompts and shape validation for the three generation steps.

The chat model is any LangChain BaseChatModel: Gemini in production,
FakeListChatModel in tests. This module owns validation of what comes
back; it never trusts the model's output shape.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from pulse.core.config import Settings
from pulse.core.errors import ContentValidationError, UpstreamTimeoutError
from pulse.core.logging import get_logger
from pulse.models.models import Skill
from pulse.schemas.schemas import BreakdownSection, ChallengeOption

logger = get_logger(__name__)

# ── Prompts ─────────────────────────────────────────────────
SYSTEM_PROMPT = (
    "You are a senior product analyst writing a daily briefing for product managers. "
    "Write plainly, avoid hype and MBA jargon."
)

SUMMARY_PROMPT = """Product: {product}
Tagline: {tagline}
Raw content: {raw_content}

Write a 2-3 paragraph summary (150-250 words) covering what the product does and
who it is for, what sets it apart from competitors, and where it sits in the market.
Return ONLY the summary text, no headings or labels."""

BREAKDOWN_PROMPT = """Product: {product}
Summary: {summary}

Produce exactly 3 analysis sections as a JSON array, in this order:
a "Key Insight" (the core strategic decision), a "Growth Lever" (how it acquires
and retains users) and "The Tradeoff" (what it gives up and whether that is worth it).

Return ONLY JSON shaped like:
[{{"heading": "Key Insight: ...", "body": "..."}},
 {{"heading": "Growth Lever: ...", "body": "..."}},
 {{"heading": "The Tradeoff: ...", "body": "..."}}]
Each body is 60-100 words."""

CHALLENGE_PROMPT = """Product: {product}
Summary: {summary}
Breakdown: {breakdown}

Write ONE multiple-choice question that tests strategic reasoning about this product
(tradeoffs, not recall). Return ONLY a JSON object:
{{"skill": "STRATEGY", "question": "...",
  "options": [{{"id": "a", "text": "...", "isCorrect": false}},
              {{"id": "b", "text": "...", "isCorrect": true}},
              {{"id": "c", "text": "...", "isCorrect": false}},
              {{"id": "d", "text": "...", "isCorrect": false}}],
  "explanation": "..."}}
skill is one of STRATEGY, GROWTH, MONETIZATION, UX, ANALYTICS.
Exactly one option has isCorrect true. The explanation (80-120 words) says why the
correct answer is right and why the others fall short."""

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")

_breakdown_adapter = TypeAdapter(list[BreakdownSection])


class GeneratedChallenge(BaseModel):
    skill: Skill = Skill.STRATEGY
    question: str = Field(min_length=1)
    options: list[ChallengeOption] = Field(min_length=1)
    explanation: str = Field(min_length=1)


def build_chat_model(settings: Settings) -> BaseChatModel:
    return ChatGoogleGenerativeAI(
        model=settings.model_processor,
        temperature=settings.llm_temperature,
        max_output_tokens=settings.llm_max_output_tokens,
        google_api_key=settings.google_api_key,
    )


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    # Content-block responses: keep the text parts only
    parts = [
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content or []
    ]
    return "".join(parts)


def parse_json_payload(raw_text: str) -> Any:
    """Strip markdown fences the model may add, then parse."""
    text = _FENCE_OPEN.sub("", raw_text.strip())
    text = _FENCE_CLOSE.sub("", text).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ContentValidationError(f"Completion is not valid JSON: {e}") from e


def validate_breakdown(payload: Any) -> list[BreakdownSection]:
    if not isinstance(payload, list) or len(payload) != 3:
        raise ContentValidationError("Breakdown must be an array of exactly 3 sections")
    try:
        return _breakdown_adapter.validate_python(payload)
    except ValidationError as e:
        raise ContentValidationError("Each breakdown section must have heading and body") from e


def validate_challenge(payload: Any) -> GeneratedChallenge:
    if not isinstance(payload, dict):
        raise ContentValidationError("Challenge must be a JSON object")
    if not payload.get("question") or not payload.get("options") or not payload.get("explanation"):
        raise ContentValidationError("Challenge must have question, options, and explanation")

    data = dict(payload)
    skill = data.get("skill")
    if not isinstance(skill, str) or skill.upper() not in Skill.__members__:
        data["skill"] = Skill.STRATEGY.value
    else:
        data["skill"] = skill.upper()
    try:
        challenge = GeneratedChallenge.model_validate(data)
    except ValidationError as e:
        raise ContentValidationError(f"Challenge options are malformed: {e.error_count()} errors") from e

    correct_count = sum(1 for o in challenge.options if o.is_correct)
    if correct_count != 1:
        raise ContentValidationError(
            f"Challenge must have exactly 1 correct option, found {correct_count}"
        )
    ids = [o.id for o in challenge.options]
    if len(ids) != len(set(ids)):
        raise ContentValidationError("Challenge option ids must be unique")
    return challenge


class CompletionClient:
    def __init__(self, llm: BaseChatModel, timeout_seconds: float = 30.0) -> None:
        self.llm = llm
        self.timeout_seconds = timeout_seconds

    async def _complete(self, prompt: str, step: str) -> str:
        messages = [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]
        try:
            response = await asyncio.wait_for(self.llm.ainvoke(messages), self.timeout_seconds)
        except TimeoutError as e:
            raise UpstreamTimeoutError(
                f"Completion for {step} timed out after {self.timeout_seconds}s"
            ) from e

        text = _message_text(response.content).strip()
        logger.debug("completion_received", step=step, response_length=len(text))
        if not text:
            raise ContentValidationError(f"Completion for {step} was empty")
        return text

    async def summarize(self, product: str, tagline: str, raw_content: str) -> str:
        return await self._complete(
            SUMMARY_PROMPT.format(product=product, tagline=tagline, raw_content=raw_content),
            "summary",
        )

    async def breakdown(self, product: str, summary: str) -> list[BreakdownSection]:
        raw = await self._complete(
            BREAKDOWN_PROMPT.format(product=product, summary=summary), "breakdown"
        )
        return validate_breakdown(parse_json_payload(raw))

    async def challenge(
        self, product: str, summary: str, breakdown: list[BreakdownSection]
    ) -> GeneratedChallenge:
        breakdown_json = json.dumps([s.model_dump() for s in breakdown])
        raw = await self._complete(
            CHALLENGE_PROMPT.format(product=product, summary=summary, breakdown=breakdown_json),
            "challenge",
        )
        return validate_challenge(parse_json_payload(raw))
