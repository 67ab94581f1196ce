"""
Tool Arguments.
One validated variant per tool, decoded once at the dispatch boundary.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from nova_support.core.exceptions import ToolNotFoundException, ToolValidationException


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SearchProductsArgs(_ToolArgs):
    tool: Literal["search_products"] = "search_products"
    query: Optional[str] = None
    category: Optional[str] = None


class GetMyOrdersArgs(_ToolArgs):
    tool: Literal["get_my_orders"] = "get_my_orders"


class AddToCartArgs(_ToolArgs):
    tool: Literal["add_to_cart"] = "add_to_cart"
    product_name: str = Field(alias="productName", min_length=1)
    quantity: Optional[int] = None


class PlaceOrderArgs(_ToolArgs):
    tool: Literal["place_order"] = "place_order"


class EscalateIssueArgs(_ToolArgs):
    tool: Literal["escalate_issue"] = "escalate_issue"
    reason: str = Field(min_length=1)


ToolArguments = Annotated[
    Union[
        SearchProductsArgs,
        GetMyOrdersArgs,
        AddToCartArgs,
        PlaceOrderArgs,
        EscalateIssueArgs
    ],
    Field(discriminator="tool")
]

_adapter = TypeAdapter(ToolArguments)

TOOL_NAMES = frozenset({
    "search_products",
    "get_my_orders",
    "add_to_cart",
    "place_order",
    "escalate_issue"
})


def decode_arguments(tool_name: str, raw: Optional[Dict[str, Any]]) -> BaseModel:
    """
    Validate a model-issued argument bag into the variant for `tool_name`.

    Raises ToolNotFoundException for unknown tools and
    ToolValidationException for missing or malformed arguments.
    """
    if tool_name not in TOOL_NAMES:
        raise ToolNotFoundException(tool_name)

    if raw is None:
        raise ToolValidationException(tool_name, ["Arguments are not valid JSON"])
    if not isinstance(raw, dict):
        raise ToolValidationException(tool_name, ["Arguments must be an object"])

    try:
        return _adapter.validate_python({**raw, "tool": tool_name})
    except ValidationError as e:
        raise ToolValidationException(tool_name, _describe(e))


def _describe(error: ValidationError) -> list:
    messages = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"] if part != "tool")
        # Discriminated unions prefix the location with the tag
        field = field.split(".", 1)[-1] if "." in field else field
        if item["type"] == "missing":
            messages.append(f"Missing required parameter: {field}")
        else:
            messages.append(f"{field}: {item['msg']}")
    return messages
