"""
Integration Layer.
Simulated CRM, survey and back-office systems with artificial latency.
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from nova_support.config import get_settings
from nova_support.db.models import (
    AnalyticsMetrics,
    EscalationTicket,
    IntegrationStatus,
    SurveyResponse
)

logger = logging.getLogger(__name__)
settings = get_settings()


ADMIN_METRICS = AnalyticsMetrics(
    total_chats=1250,
    valid_chats=1100,
    invalid_chats=150,
    avg_engagement_score=85,
    csat_score=4.7
)

_INTEGRATIONS = [
    ("erp", "SAP ERP Cloud", timedelta(0)),
    ("crm", "Salesforce CRM", timedelta(minutes=5)),
    ("payment", "Stripe Gateway", timedelta(0)),
    ("inventory", "Oracle NetSuite", timedelta(hours=1)),
]


class IntegrationService:
    """
    Stand-in for the ticketing, survey and ERP systems.

    Every call sleeps for a configurable delay to mimic a network round
    trip, which is what makes late results possible in the session loops.
    """

    def __init__(
        self,
        escalation_delay: Optional[float] = None,
        survey_delay: Optional[float] = None,
        integration_delay: Optional[float] = None,
        analytics_delay: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        self.escalation_delay = _pick(escalation_delay, settings.ESCALATION_DELAY_SECONDS)
        self.survey_delay = _pick(survey_delay, settings.SURVEY_DELAY_SECONDS)
        self.integration_delay = _pick(integration_delay, settings.INTEGRATION_DELAY_SECONDS)
        self.analytics_delay = _pick(analytics_delay, settings.ANALYTICS_DELAY_SECONDS)
        self._rng = rng or random.Random()
        self._tickets: Dict[str, EscalationTicket] = {}
        self._surveys: List[SurveyResponse] = []

    async def create_escalation_ticket(self, user_id: str, reason: str) -> str:
        """Open a support ticket and return its id."""
        await asyncio.sleep(self.escalation_delay)

        ticket_id = f"TKT-{self._rng.randint(10000, 99999)}"
        self._tickets[ticket_id] = EscalationTicket(
            ticket_id=ticket_id,
            user_id=user_id,
            reason=reason
        )
        logger.info(f"Escalation ticket {ticket_id} created for {user_id}. Reason: {reason}")
        return ticket_id

    async def submit_survey(self, user_id: str, rating: int, feedback: str) -> bool:
        """Record an end-of-chat survey."""
        logger.info(f"Survey received from {user_id}: {rating}/5 - {feedback}")
        await asyncio.sleep(self.survey_delay)
        self._surveys.append(SurveyResponse(rating=rating, feedback=feedback))
        return True

    async def get_system_integrations(self) -> List[IntegrationStatus]:
        """Connection status of the back-office systems."""
        await asyncio.sleep(self.integration_delay)

        now = datetime.now()
        return [
            IntegrationStatus(
                id=integration_id,
                name=name,
                status="latency" if self._rng.random() > 0.9 else "connected",
                last_sync=now - lag
            )
            for integration_id, name, lag in _INTEGRATIONS
        ]

    async def get_analytics_report(self, user_id: str, role: str) -> AnalyticsMetrics:
        """Fleet metrics for admins, a personal snapshot for customers."""
        await asyncio.sleep(self.analytics_delay)

        if role == "admin":
            return ADMIN_METRICS

        return AnalyticsMetrics(
            total_chats=self._rng.randint(1, 20),
            valid_chats=self._rng.randint(1, 20),
            invalid_chats=0,
            avg_engagement_score=90,
            csat_score=5.0
        )

    def get_ticket(self, ticket_id: str) -> Optional[EscalationTicket]:
        return self._tickets.get(ticket_id)

    @property
    def surveys(self) -> List[SurveyResponse]:
        return list(self._surveys)


def _pick(value: Optional[float], default: float) -> float:
    return default if value is None else value
