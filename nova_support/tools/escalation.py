"""
Escalation Tool.
Hands the conversation over to the human ticketing system.
"""

import logging

from nova_support.tools.arguments import EscalateIssueArgs
from nova_support.tools.registry import Tool, ToolContext, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


async def escalate_issue_handler(
    args: EscalateIssueArgs,
    context: ToolContext
) -> ToolResult:
    """Open a ticket. Only the ticket id is surfaced to the user."""
    user_id = context.customer_id()
    ticket_id = await context.integrations.create_escalation_ticket(user_id, args.reason)

    return ToolResult.ok(
        f"Ticket created with ID {ticket_id}. The agent should confirm this to the user.",
        ticketId=ticket_id
    )


def register_escalation_tools(registry: ToolRegistry):
    """Register escalation tools."""

    registry.register(Tool(
        name="escalate_issue",
        description="Escalate the current conversation to a human agent or support ticket system.",
        parameters={
            "reason": {
                "type": "string",
                "description": "The reason for escalation provided by the user."
            }
        },
        handler=escalate_issue_handler,
        required_params=["reason"]
    ))

    logger.info("Escalation tools registered")
