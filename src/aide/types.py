from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class LoopStatus(str, Enum):
    DONE = "done"
    DONE_MAX_ITERATIONS = "done_max_iterations"
    DISABLED = "disabled"
    NOT_CONNECTED = "not_connected"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversationTurn:
    conversation_id: str
    role: Role
    content: str
    sequence: int


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ToolCallResult:
    correlation_id: str
    payload: dict[str, Any]

    @property
    def is_error(self) -> bool:
        return self.payload.get("status") == "error"


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_payload() for call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(frozen=True)
class ModelReply:
    content: str | None
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass
class LoopState:
    messages: list[ChatMessage] = field(default_factory=list)
    iteration_count: int = 0


@dataclass(frozen=True)
class ChatOutcome:
    reply: str
    status: LoopStatus
    delivered: bool
    iterations: int = 0
