"""
AI Chat API endpoints.

Claude-powered assistant that answers questions about the dashboard's
aggregate figures. It has no access to Meta Ads itself.
"""

from typing import Optional

import anthropic
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dependencies import get_answerer
from services import config
from services.ai_assistant import (
    AIContext,
    AssistantUnavailable,
    ChatMessage,
    ClaudeAnswerer,
    build_messages,
)

router = APIRouter()


class AnalyzeRequest(BaseModel):
    context: AIContext
    question: str = Field(min_length=1)
    history: list[ChatMessage] = []
    max_tokens: Optional[int] = Field(default=None, ge=1, le=4096)


@router.get("/status")
def get_status(answerer: ClaudeAnswerer = Depends(get_answerer)):
    """Check if AI chat is available."""
    return {
        "available": answerer.available,
        "api_key_set": answerer.available,
        "model": answerer.model,
    }


@router.post("/analyze")
def analyze(request: AnalyzeRequest, answerer: ClaudeAnswerer = Depends(get_answerer)):
    """Answer a question about the metrics in the request context."""
    messages = build_messages(request.context, request.question.strip(), request.history)

    try:
        result = answerer.answer(messages, request.max_tokens or config.AI_MAX_TOKENS)
    except AssistantUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except anthropic.AuthenticationError:
        raise HTTPException(status_code=401, detail="Invalid Anthropic API key")
    except anthropic.RateLimitError:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    except anthropic.APIError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "success": True,
        "response": result["text"],
        "usage": result["usage"],
    }
