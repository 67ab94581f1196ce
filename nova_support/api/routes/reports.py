"""
Reports Endpoints.
Analytics dashboard and back-office integration status.
"""

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/analytics")
async def get_analytics(request: Request):
    """
    Chat metrics for the analytics dashboard.

    Admins see fleet-wide numbers, customers a personal snapshot.
    """
    support = request.app.state.support
    customer = support.customer

    metrics = await request.app.state.integrations.get_analytics_report(customer.id, customer.role)
    return {
        "customer_id": customer.id,
        "role": customer.role,
        "metrics": metrics.to_dict()
    }


@router.get("/integrations")
async def get_integrations(request: Request):
    """Connection status of ERP, CRM, payment and inventory systems."""
    integrations = await request.app.state.integrations.get_system_integrations()
    return {
        "integrations": [integration.to_dict() for integration in integrations]
    }
