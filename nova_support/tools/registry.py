"""
Tool Registry and Dispatcher.
Manages tool registration and turns model-issued calls into structured results.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from nova_support.core.cart import CartStateMachine
from nova_support.core.exceptions import ToolException, ToolExecutionException
from nova_support.services.catalog import CatalogService
from nova_support.services.integrations import IntegrationService
from nova_support.tools.arguments import decode_arguments

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A function call requested by the model."""
    id: str
    name: str
    arguments: Optional[Dict[str, Any]]


@dataclass
class ToolResult:
    """Structured outcome handed back to the model."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, **data) -> "ToolResult":
        return cls(success=True, message=message, data=data or None)

    @classmethod
    def fail(cls, message: str, error: str = "BUSINESS_RULE") -> "ToolResult":
        return cls(success=False, message=message, error=error)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data or {}
        else:
            result["error"] = self.error
        result["message"] = self.message
        return result


@dataclass
class ToolResponse:
    """A ToolResult paired with the call it answers."""
    call_id: str
    name: str
    arguments: Optional[Dict[str, Any]]
    result: ToolResult
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.call_id,
            "name": self.name,
            "response": {"result": self.result.to_dict()}
        }


@dataclass
class ToolContext:
    """
    Live handles the tool handlers act on.

    Handlers read the cart and the active customer through these references
    at execution time, so a slow round trip never acts on stale state.
    """
    catalog: CatalogService
    cart: CartStateMachine
    integrations: IntegrationService
    customer_id: Callable[[], str]


ToolHandler = Callable[[Any, ToolContext], Awaitable[ToolResult]]


@dataclass
class Tool:
    """Tool definition for model function calling."""
    name: str
    description: str
    parameters: Dict[str, Any]
    handler: ToolHandler
    required_params: List[str] = field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI/Groq tool schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": self.required_params
                }
            }
        }


class ToolRegistry:
    """
    Registry for managing and dispatching tools.

    `dispatch` never raises: unknown tools, bad arguments and handler
    crashes all come back as a failed ToolResult the model can explain.
    """

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def initialize(self):
        """Register the storefront tools."""
        logger.info("Initializing tool registry...")

        from nova_support.tools.product_search import register_product_tools
        from nova_support.tools.orders import register_order_tools
        from nova_support.tools.cart import register_cart_tools
        from nova_support.tools.escalation import register_escalation_tools

        register_product_tools(self)
        register_order_tools(self)
        register_cart_tools(self)
        register_escalation_tools(self)

        logger.info(f"Registered {len(self._tools)} tools: {list(self._tools.keys())}")
        return self

    def register(self, tool: Tool):
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._tools.keys())

    def get_tool_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for the model."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def dispatch(self, call: ToolCall, context: ToolContext) -> ToolResponse:
        """Execute one call and wrap whatever happens in a ToolResponse."""
        start_time = time.time()

        try:
            tool = self._tools.get(call.name)
            args = decode_arguments(call.name, call.arguments)
            if tool is None:
                raise ToolExecutionException(call.name, "tool is not registered")
            result = await tool.handler(args, context)

        except ToolException as e:
            logger.warning(f"Tool call rejected: {e.message}")
            result = ToolResult.fail(e.message, error=e.error_code)

        except Exception as e:
            logger.exception(f"Tool execution error: {call.name} - {e}")
            failure = ToolExecutionException(call.name, type(e).__name__)
            result = ToolResult.fail(failure.message, error=failure.error_code)

        execution_time = (time.time() - start_time) * 1000
        logger.info(f"Tool {call.name} executed in {execution_time:.2f}ms (success={result.success})")

        return ToolResponse(
            call_id=call.id,
            name=call.name,
            arguments=call.arguments,
            result=result,
            latency_ms=execution_time
        )

    async def dispatch_batch(
        self,
        calls: List[ToolCall],
        context: ToolContext
    ) -> List[ToolResponse]:
        """Run a batch in order; every call finishes before the next starts."""
        responses = []
        for call in calls:
            responses.append(await self.dispatch(call, context))
        return responses
