"""
Conversation REST Endpoints.
Text chat with the support agent.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from nova_support.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


SURVEY_THANKS = {
    "en": "Thank you for your feedback!",
    "fr": "Merci pour votre avis !"
}


class ConversationMessage(BaseModel):
    """Request model for sending a message or picking a quick-reply option."""
    text: Optional[str] = None
    option: Optional[str] = None


class ConversationResponse(BaseModel):
    """Response model for conversation."""
    response: str
    state: str
    language: str
    customer_id: str
    rounds: int = 0
    latency_ms: float = 0.0
    tool_calls: List[dict] = []
    error_code: Optional[str] = None


class SurveySubmission(BaseModel):
    """End-of-chat satisfaction survey."""
    rating: int = Field(ge=1, le=5)
    feedback: str = ""


@router.post("/message", response_model=ConversationResponse)
async def send_message(request: Request, message: ConversationMessage):
    """
    Send a text message and get the agent's reply.

    Tool calls the model makes along the way are executed against the
    shared cart and catalog before the reply is produced.
    """
    support = request.app.state.support

    text = message.text
    if message.option:
        text = support.option_text(message.option)
        if text is None:
            raise HTTPException(status_code=400, detail=f"Unknown option '{message.option}'")

    if not text or not text.strip():
        raise HTTPException(status_code=400, detail="Message text is required")

    result = await support.send_message(text.strip())
    payload = result.to_dict()

    return ConversationResponse(
        response=result.text,
        state=result.state.value,
        language=support.language,
        customer_id=support.customer_id,
        rounds=result.rounds,
        latency_ms=round(result.processing_time_ms or 0.0, 2),
        tool_calls=payload["tool_calls"],
        error_code=result.error_code
    )


@router.post("/reset")
async def reset_conversation(request: Request):
    """Start a fresh chat for the current customer."""
    support = request.app.state.support
    support.reset()
    return {
        "status": "reset",
        "epoch": support.epoch,
        "welcome": support.welcome()
    }


@router.get("/history")
async def get_history(request: Request, limit: Optional[int] = None):
    """Transcript of the current chat."""
    support = request.app.state.support
    turns = support.turns
    if limit:
        turns = turns[-limit:]

    return {
        "customer_id": support.customer_id,
        "language": support.language,
        "turns": [turn.to_dict() for turn in turns],
        "total": len(turns)
    }


@router.post("/survey")
async def submit_survey(request: Request, survey: SurveySubmission):
    """Submit the satisfaction survey shown at the end of a chat."""
    support = request.app.state.support
    await support.submit_survey(survey.rating, survey.feedback)

    return {
        "success": True,
        "message": SURVEY_THANKS.get(support.language, SURVEY_THANKS["en"])
    }
