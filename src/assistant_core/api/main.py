"""FastAPI entrypoint for chat, usage, model and tool endpoints."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from assistant_core import __version__
from assistant_core.agent.orchestrator import ChatOrchestrator, ChatTurn
from assistant_core.agent.registry import ToolRegistry
from assistant_core.agent.resilient import ResilientCaller
from assistant_core.agent.tools import register_builtin_tools
from assistant_core.config import Settings
from assistant_core.obs.logging import configure_logging, get_logger
from assistant_core.providers.credentials import (
    CredentialResolver,
    EnvironmentCredentials,
    UserOverrideCredentials,
)
from assistant_core.providers.errors import classify_error
from assistant_core.providers.registry import ProviderRegistry, build_provider_registry
from assistant_core.routing.models import catalog
from assistant_core.state import RuntimeState
from assistant_core.stores import (
    InMemoryMemoryStore,
    InMemoryTaskStore,
    InMemoryUsageStore,
    InMemoryUserKeyStore,
    MemoryStore,
    TaskStore,
    UsageStore,
    UserKeyStore,
)
from assistant_core.types import Message, ToolParameter, ToolSpec

logger = get_logger(__name__)


class MessageIn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ToolParameterIn(BaseModel):
    type: str = "string"
    description: str | None = None
    required: bool = False
    default: Any = None


class ToolSpecIn(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    parameters: dict[str, ToolParameterIn] = Field(default_factory=dict)

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters={
                key: ToolParameter(
                    type=p.type, description=p.description, required=p.required, default=p.default
                )
                for key, p in self.parameters.items()
            },
        )


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[MessageIn] = Field(min_length=1)
    tools: list[ToolSpecIn] | None = None
    model: str | None = None
    source: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    approved_tools: list[str] = Field(default_factory=list, alias="approvedTools")

    def to_turn(self) -> ChatTurn:
        return ChatTurn(
            messages=[Message(role=m.role, content=m.content) for m in self.messages],
            tools=[t.to_spec() for t in self.tools] if self.tools else None,
            model=self.model or None,
            source=self.source,
            user_id=self.user_id,
            approved_tools=list(self.approved_tools),
        )


@dataclass(slots=True)
class Services:
    """Everything the endpoints need, built once per app."""

    settings: Settings
    providers: ProviderRegistry
    credentials: CredentialResolver
    orchestrator: ChatOrchestrator
    tools: ToolRegistry
    usage_store: UsageStore
    state: RuntimeState


def build_services(
    settings: Settings | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
    providers: ProviderRegistry | None = None,
    user_keys: UserKeyStore | None = None,
    usage_store: UsageStore | None = None,
    memory_store: MemoryStore | None = None,
    task_store: TaskStore | None = None,
    sleep=asyncio.sleep,
) -> Services:
    settings = settings or Settings()
    providers = providers or build_provider_registry(settings, http_client)
    credentials = CredentialResolver(
        [
            EnvironmentCredentials(settings.providers, environ),
            UserOverrideCredentials(settings.providers, user_keys or InMemoryUserKeyStore()),
        ]
    )
    caller = ResilientCaller(
        providers,
        credentials,
        settings.resilience,
        reliable_providers=settings.tool_routing.reliable_providers,
        sleep=sleep,
    )
    usage_store = usage_store or InMemoryUsageStore()
    memory_store = memory_store or InMemoryMemoryStore()
    task_store = task_store or InMemoryTaskStore()
    state = RuntimeState()
    orchestrator = ChatOrchestrator(
        settings,
        caller,
        usage_store=usage_store,
        memory_store=memory_store,
        task_store=task_store,
        state=state,
    )
    tools = ToolRegistry(settings.agent, sleep=sleep)
    register_builtin_tools(tools, memory=memory_store, tasks=task_store)
    return Services(
        settings=settings,
        providers=providers,
        credentials=credentials,
        orchestrator=orchestrator,
        tools=tools,
        usage_store=usage_store,
        state=state,
    )


router = APIRouter()


def _services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/chat")
async def chat(payload: ChatRequest, request: Request) -> Any:
    services = _services(request)
    try:
        reply = await services.orchestrator.handle(payload.to_turn())
    except Exception as exc:
        classified = classify_error(exc)
        logger.error("chat_failed", error=str(exc), error_class=classified.kind.value)
        return _error(400 if classified.terminal else 500, str(exc) or "Failed to process request")
    return reply.to_payload()


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    services = _services(request)
    return {
        "status": "ok",
        "version": __version__,
        "providers": {
            name: services.credentials.has(name) for name in services.providers.names()
        },
        "turns": services.state.turns,
        "uptime_seconds": round(services.state.uptime_seconds(), 3),
    }


@router.get("/usage")
def usage(request: Request) -> dict[str, Any]:
    services = _services(request)
    try:
        summary = services.usage_store.summary()
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {**summary, "in_process_cost_today_usd": round(services.state.cost_today(), 6)}


@router.get("/models")
def models() -> dict[str, Any]:
    return {"items": catalog()}


@router.get("/tools")
def list_tools(request: Request) -> dict[str, Any]:
    services = _services(request)
    return {
        "items": [
            {
                "name": tool.name,
                "description": tool.description,
                "tags": tool.tags,
                "parameters": tool.to_spec().json_schema(),
            }
            for tool in services.tools.tools()
        ]
    }


@router.post("/tools/{name}")
async def run_tool(name: str, request: Request, payload: dict[str, Any] | None = None) -> Any:
    services = _services(request)
    if name not in services.tools:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    return {"name": name, "result": await services.tools.execute(name, payload or {})}


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = services.settings if services is not None else settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        json_output = settings.app_http.log_json
        if json_output is None:
            json_output = not sys.stdout.isatty()
        configure_logging(settings.app_http.log_level, json_output=json_output)
        yield
        await app.state.services.providers.aclose()

    app = FastAPI(title="Assistant Core", version=__version__, lifespan=lifespan)
    app.state.services = services or build_services(settings)
    app.include_router(router)
    return app


app = create_app()
