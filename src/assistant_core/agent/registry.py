"""Tool registry built on Pydantic v2 models.

`ToolRegistry.execute` is the single executeTool boundary: one call per tool
name, arguments validated against the tool's schema, and failures returned as
`{"error": ...}` instead of raised.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from assistant_core.config import AgentConfig
from assistant_core.obs.logging import get_logger
from assistant_core.obs.usage import Timer
from assistant_core.types import ToolParameter, ToolSpec, ToolTrace

logger = get_logger(__name__)

_NON_RETRYABLE_HINTS = ("unauthorized", "forbidden", "bad request", "not configured", "invalid")


class RegisteredTool(BaseModel):
    """Declarative tool registration: schema, handler and tags."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], Any]
    tags: list[str] = Field(default_factory=list)

    async def invoke(self, data: BaseModel) -> Any:
        output = self.handler(data)
        if inspect.isawaitable(output):
            output = await output
        return output

    def to_spec(self) -> ToolSpec:
        schema = self.args_schema.model_json_schema()
        required = set(schema.get("required", []))
        parameters: dict[str, ToolParameter] = {}
        for key, prop in schema.get("properties", {}).items():
            parameters[key] = ToolParameter(
                type=_json_type(prop),
                description=prop.get("description"),
                required=key in required,
                default=prop.get("default"),
            )
        return ToolSpec(name=self.name, description=self.description, parameters=parameters)


def _json_type(prop: dict[str, Any]) -> str:
    if "type" in prop:
        return prop["type"]
    for option in prop.get("anyOf", []):
        if option.get("type") not in (None, "null"):
            return option["type"]
    return "string"


def is_retryable_tool_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return not any(hint in message for hint in _NON_RETRYABLE_HINTS)


async def with_tool_retry(
    fn: Callable[[], Awaitable[Any]],
    label: str,
    *,
    retries: int = 2,
    delay_seconds: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """Retry transient tool failures; waits grow as delay * (attempt + 1)."""

    def _log(state: RetryCallState) -> None:
        logger.warning(
            "tool_retry",
            tool=label,
            attempt=state.attempt_number,
            error=str(state.outcome.exception()) if state.outcome else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_incrementing(start=delay_seconds, increment=delay_seconds),
        retry=retry_if_exception(is_retryable_tool_error),
        sleep=sleep,
        before_sleep=_log,
        reraise=True,
    )
    return await retrying(fn)


class ToolRegistry:
    """Stores registered tools and exports canonical tool specs."""

    def __init__(
        self,
        config: AgentConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._observer: Callable[[ToolTrace], None] | None = None
        self.config = config or AgentConfig()
        self._sleep = sleep

    def register(self, tool: RegisteredTool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def tools(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    def definitions(self) -> list[ToolSpec]:
        return [tool.to_spec() for tool in self._tools.values()]

    async def execute(self, name: str, payload: dict[str, Any]) -> Any:
        tool = self._tools.get(name)
        if tool is None:
            return {"error": f"Unknown tool: {name}"}

        with Timer() as timer:
            output = await self._run(tool, payload)

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=tool.name,
                    input_payload=payload,
                    output_preview=str(output)[:320],
                    latency_ms=timer.elapsed_ms,
                )
            )
        return output

    async def _run(self, tool: RegisteredTool, payload: dict[str, Any]) -> Any:
        try:
            data = tool.args_schema.model_validate(payload)
        except ValidationError as exc:
            fields = ", ".join(".".join(map(str, err["loc"])) or "payload" for err in exc.errors())
            return {"error": f"Invalid arguments for {tool.name}: {fields}"}

        try:
            return await with_tool_retry(
                lambda: tool.invoke(data),
                tool.name,
                retries=self.config.tool_retries,
                delay_seconds=self.config.tool_retry_delay_seconds,
                sleep=self._sleep,
            )
        except Exception as exc:
            logger.warning("tool_failed", tool=tool.name, error=str(exc))
            return {"error": str(exc) or exc.__class__.__name__}
