"""Bounded client-side agent loop.

Each round sends the conversation through the orchestrator. Tool calls in the
reply run one after another through the tool registry and their results are
appended to the conversation for the next round. The last permitted round is
sent without tools, so the loop always ends on a text reply or an approval
request.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any

from assistant_core.agent.orchestrator import ChatOrchestrator, ChatReply, ChatTurn
from assistant_core.agent.prompts import tool_feedback_messages
from assistant_core.agent.registry import ToolRegistry
from assistant_core.config import AgentConfig
from assistant_core.obs.logging import get_logger
from assistant_core.types import Message

logger = get_logger(__name__)


@dataclass(slots=True)
class ToolRun:
    name: str
    arguments: dict[str, Any]
    output: Any

    @property
    def failed(self) -> bool:
        return isinstance(self.output, dict) and "error" in self.output


@dataclass(slots=True)
class AgentTurn:
    reply: ChatReply
    tool_runs: list[ToolRun] = field(default_factory=list)
    rounds: int = 0

    @property
    def text(self) -> str:
        return self.reply.response or ""


def format_tool_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


class AgentLoop:
    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        tools: ToolRegistry,
        config: AgentConfig | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.tools = tools
        self.config = config or AgentConfig()

    async def run(self, turn: ChatTurn) -> AgentTurn:
        specs = turn.tools if turn.tools is not None else self.tools.definitions()
        messages: list[Message] = list(turn.messages)
        runs: list[ToolRun] = []
        max_rounds = self.config.max_rounds

        for round_no in range(1, max_rounds):
            reply = await self.orchestrator.handle(
                dataclasses.replace(turn, messages=list(messages), tools=specs)
            )
            if reply.approval_required or not reply.tool_calls:
                return AgentTurn(reply=reply, tool_runs=runs, rounds=round_no)

            results: list[str] = []
            for call in reply.tool_calls:
                output = await self.tools.execute(call.name, call.arguments)
                run = ToolRun(name=call.name, arguments=call.arguments, output=output)
                runs.append(run)
                results.append(f"{call.name}: {format_tool_output(output)}")
                logger.info("agent_tool_executed", tool=call.name, round=round_no, failed=run.failed)

            messages.extend(
                tool_feedback_messages([c.name for c in reply.tool_calls], "\n".join(results))
            )

        logger.info("agent_round_limit", rounds=max_rounds, tool_runs=len(runs))
        reply = await self.orchestrator.handle(
            dataclasses.replace(turn, messages=list(messages), tools=None)
        )
        return AgentTurn(reply=reply, tool_runs=runs, rounds=max_rounds)
