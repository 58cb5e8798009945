"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

Role = Literal["system", "user", "assistant"]


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


@dataclass(slots=True)
class Message:
    """One conversation message. Only element 0 may carry the `system` role."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class ToolParameter:
    type: str = "string"
    description: str | None = None
    required: bool = False
    default: Any = None


@dataclass(slots=True)
class ToolSpec:
    """Canonical, backend-agnostic tool description."""

    name: str
    description: str
    parameters: dict[str, ToolParameter] = field(default_factory=dict)

    def json_schema(self, *, include_defaults: bool = True) -> dict[str, Any]:
        """Render parameters as a JSON-schema object, the shape every backend accepts."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for key, param in self.parameters.items():
            prop: dict[str, Any] = {"type": param.type or "string"}
            if param.description:
                prop["description"] = param.description
            if include_defaults and param.default is not None:
                prop["default"] = param.default
            properties[key] = prop
            if param.required:
                required.append(key)
        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema


@dataclass(slots=True)
class ToolCall:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass(slots=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(slots=True)
class ProviderResult:
    """Canonical provider reply: either text or tool calls, never both."""

    text: str | None = None
    tool_calls: list[ToolCall] | None = None
    model_echo: str = ""
    raw_usage: dict[str, Any] = field(default_factory=dict)
    usage: TokenUsage = field(default_factory=TokenUsage)

    def __post_init__(self) -> None:
        if self.tool_calls:
            self.text = None
        else:
            self.tool_calls = None
            if self.text is None:
                self.text = ""

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(slots=True)
class RoutingDecision:
    model: str
    complexity: Complexity
    routed: bool


@dataclass(slots=True)
class CostDecision:
    original_model: str
    selected_model: str
    tier: str
    reason: str
    estimated_cost_usd: float
    downgraded_for_budget: bool = False


@dataclass(slots=True)
class CallOutcome:
    result: ProviderResult
    provider: str
    model: str
    used_fallback: bool = False


@dataclass(slots=True)
class CompactionResult:
    messages: list[Message]
    compacted: bool
    saved_tokens_estimate: int = 0


@dataclass(slots=True)
class ApprovalResult:
    approved: bool
    blocked_tools: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass(slots=True)
class UsageEntry:
    """One usage record handed to the usage store after a turn."""

    timestamp: str
    model: str
    provider: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float
    success: bool
    endpoint: str
    tool_used: str | None = None
    routing_reason: str = ""
    estimated_cost: float = 0.0


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
