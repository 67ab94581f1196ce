"""
Session Endpoints.
Active customer and conversation language.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from nova_support.config import LANGUAGE_NAMES, get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class SessionUpdate(BaseModel):
    """Request model for switching customer and/or language."""
    customer_id: Optional[str] = None
    language: Optional[str] = None


def _session_payload(support) -> dict:
    return {
        "customer": support.customer.to_dict(),
        "language": support.language,
        "language_name": LANGUAGE_NAMES.get(support.language, support.language),
        "supported_languages": settings.SUPPORTED_LANGUAGES,
        "epoch": support.epoch,
        "welcome": support.welcome()
    }


@router.get("")
async def get_session(request: Request):
    """Current customer, language and welcome message."""
    return _session_payload(request.app.state.support)


@router.put("")
async def update_session(request: Request, update: SessionUpdate):
    """
    Switch customer and/or language.

    Any change resets the chat; a turn still in flight is discarded.
    """
    support = request.app.state.support

    if update.customer_id is not None:
        support.switch_customer(update.customer_id)
    if update.language is not None:
        support.set_language(update.language)

    agent_logger = request.app.state.agent_logger
    if agent_logger:
        await agent_logger.log_session_start(
            support.conversation.session_id,
            support.customer_id,
            support.language
        )

    return _session_payload(support)


@router.get("/customers")
async def list_customers(request: Request):
    """Customers available in the demo switcher."""
    customers = request.app.state.customers.get_all()
    return {
        "customers": [customer.to_dict() for customer in customers],
        "total": len(customers)
    }
