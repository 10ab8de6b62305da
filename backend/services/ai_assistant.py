"""
AI assistant for the dashboard.

Claude only ever sees the aggregate figures the dashboard already computed
(AIContext). Raw insight rows and credentials are never put in a prompt.
"""

import logging
from typing import Literal, Optional

import anthropic
from pydantic import BaseModel, ConfigDict

from services import config

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a Meta Ads performance analyst assistant.

You help the user understand the advertising metrics shown on their dashboard.
You only know the figures provided in the context; you cannot query Meta Ads yourself.

KEY CONCEPTS:
- CTR (click-through rate) = clicks / impressions, in percent
- CPC (cost per click) and CPM (cost per 1,000 impressions) are in the account currency
- Average CTR/CPC/CPM on the dashboard are simple means of per-row values
- Video retention: 3-second plays, 50% and 100% watched

WHEN ANSWERING:
- Reference the actual numbers from the context
- Say so when the context does not contain what the question needs
- Be specific and actionable, keep responses concise"""


class CampaignSpend(BaseModel):
    name: str
    spend: float


class RetentionSummary(BaseModel):
    video_plays: Optional[int] = None
    p50: Optional[int] = None
    p100: Optional[int] = None


class AIContext(BaseModel):
    """Aggregates the dashboard shares with the assistant."""
    model_config = ConfigDict(extra="forbid")

    period: str
    spend: float
    impressions: Optional[int] = None
    clicks: Optional[int] = None
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    cpm: Optional[float] = None
    reach: Optional[int] = None
    top_campaigns: list[CampaignSpend] = []
    retention: Optional[RetentionSummary] = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class AssistantUnavailable(Exception):
    """Anthropic is not configured."""


def build_context_text(context: AIContext) -> str:
    """Render the context as the plain-text block sent to the model."""
    lines = [
        "=== CURRENT META ADS DATA ===",
        f"Period: {context.period}",
        f"Spend: ${context.spend:,.2f}",
    ]

    if context.impressions is not None:
        lines.append(f"Impressions: {context.impressions:,}")
    if context.reach is not None:
        lines.append(f"Reach: {context.reach:,}")
    if context.clicks is not None:
        lines.append(f"Clicks: {context.clicks:,}")
    if context.ctr is not None:
        lines.append(f"CTR: {context.ctr:.2f}%")
    if context.cpc is not None:
        lines.append(f"CPC: ${context.cpc:.2f}")
    if context.cpm is not None:
        lines.append(f"CPM: ${context.cpm:.2f}")

    if context.top_campaigns:
        lines.extend(["", "--- Top Campaigns by Spend ---"])
        for campaign in context.top_campaigns[:5]:
            lines.append(f"  - {campaign.name[:50]}: ${campaign.spend:,.2f}")

    retention = context.retention
    if retention:
        lines.extend(["", "--- Video Retention ---"])
        if retention.video_plays is not None:
            lines.append(f"3s plays: {retention.video_plays:,}")
        if retention.p50 is not None:
            lines.append(f"Watched 50%: {retention.p50:,}")
        if retention.p100 is not None:
            lines.append(f"Watched 100%: {retention.p100:,}")

    return "\n".join(lines)


def build_messages(context: AIContext, question: str, history: Optional[list[ChatMessage]] = None) -> list[dict]:
    """Conversation for the model: prior turns, then the question with fresh context."""
    messages = [{"role": m.role, "content": m.content} for m in history or []]
    messages.append({
        "role": "user",
        "content": f"Here is my current Meta Ads data:\n\n{build_context_text(context)}\n\n---\n\nMy question: {question}",
    })
    return messages


class ClaudeAnswerer:
    """answer(messages) -> {text, usage} on top of the Anthropic SDK."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        self.model = model or config.ANTHROPIC_MODEL
        self._client = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def answer(self, messages: list[dict], max_tokens: int = config.AI_MAX_TOKENS) -> dict:
        if not self.available:
            raise AssistantUnavailable("ANTHROPIC_API_KEY not configured")

        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)

        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=SYSTEM_PROMPT,
            messages=messages,
        )
        logger.info(
            "Assistant answered (%d input / %d output tokens)",
            response.usage.input_tokens, response.usage.output_tokens,
        )

        return {
            "text": response.content[0].text,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        }
