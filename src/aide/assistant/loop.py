from __future__ import annotations

import asyncio
import json
import logging
from datetime import tzinfo
from pathlib import Path
from typing import Any, Protocol, Sequence

from aide.assistant.clock import Clock, zone_clock
from aide.assistant.prompt import build_system_prompt
from aide.assistant.tools import NOT_CONNECTED_CODE, TOOL_CATALOG, ToolContext, ToolRegistry
from aide.errors import NotConnectedError
from aide.llm.client import ChatModel
from aide.storage.conversations import ConversationStore
from aide.types import ChatMessage, ChatOutcome, LoopState, LoopStatus, Role, ToolCallResult

LOGGER = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 10

AI_DISABLED_REPLY = "AI 기능이 비활성화되어 있습니다. (LLM API 키 미설정)"
TOO_COMPLEX_REPLY = "요청을 처리하는 데 너무 많은 단계가 필요합니다. 더 간단하게 요청해 주세요."
NOT_CONNECTED_REPLY = "Google 계정이 연결되지 않았습니다. 먼저 OAuth 인증을 완료해 주세요."
FAILURE_REPLY = "처리 중 오류가 발생했습니다. 잠시 후 다시 시도해 주세요."
EMPTY_REPLY = "무슨 말씀이신지 잘 모르겠어요."


class Notifier(Protocol):
    async def deliver(self, chat_id: str, text: str) -> bool: ...


class ChatHandler:
    """Runs one user turn: history, model rounds with parallel tool calls, reply.

    A turn moves AWAITING_MODEL -> (TOOL_CALLS_PENDING -> AWAITING_MODEL)* and
    ends on the first text-only model response or after ``max_iterations``
    model calls. The user message is stored before the model is called; the
    reply is stored only when the loop itself completed. The notifier gets
    exactly one message per inbound message, whatever happened.
    """

    def __init__(
        self,
        *,
        model: ChatModel | None,
        tools: ToolRegistry,
        store: ConversationStore,
        notifier: Notifier,
        zone: tzinfo,
        timezone_name: str,
        clock: Clock | None = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        owner_name: str = "대표님",
        prompt_dir: Path | None = None,
        tool_catalog: Sequence[dict[str, Any]] = TOOL_CATALOG,
    ) -> None:
        self._model = model
        self._tools = tools
        self._store = store
        self._notifier = notifier
        self._zone = zone
        self._timezone_name = timezone_name
        self._clock = clock or zone_clock(zone)
        self._max_iterations = max_iterations
        self._owner_name = owner_name
        self._prompt_dir = prompt_dir
        self._tool_catalog = list(tool_catalog)

    @property
    def enabled(self) -> bool:
        return self._model is not None

    async def handle_message(self, chat_id: str | int, text: str) -> ChatOutcome:
        chat_id = str(chat_id)
        if self._model is None:
            delivered = await self._notifier.deliver(chat_id, AI_DISABLED_REPLY)
            return ChatOutcome(reply=AI_DISABLED_REPLY, status=LoopStatus.DISABLED, delivered=delivered)

        state = LoopState()
        try:
            reply, status = await self._respond(chat_id, text, state)
        except NotConnectedError:
            LOGGER.warning("Google account not connected while handling chat %s", chat_id)
            reply, status = NOT_CONNECTED_REPLY, LoopStatus.NOT_CONNECTED
        except Exception:  # noqa: BLE001
            LOGGER.exception("Chat turn failed for chat %s", chat_id)
            reply, status = FAILURE_REPLY, LoopStatus.FAILED

        delivered = await self._notifier.deliver(chat_id, reply)
        if not delivered:
            LOGGER.warning("Reply for chat %s was produced but not delivered", chat_id)
        return ChatOutcome(
            reply=reply,
            status=status,
            delivered=delivered,
            iterations=state.iteration_count,
        )

    async def _respond(self, chat_id: str, text: str, state: LoopState) -> tuple[str, LoopStatus]:
        history = await self._store.load(chat_id)
        await self._store.append(chat_id, Role.USER, text)

        system_prompt = build_system_prompt(
            self._clock().astimezone(self._zone),
            timezone_name=self._timezone_name,
            owner_name=self._owner_name,
            prompt_dir=self._prompt_dir,
        )
        state.messages = [
            ChatMessage(role="system", content=system_prompt),
            *(ChatMessage(role=turn.role.value, content=turn.content) for turn in history),
            ChatMessage(role="user", content=text),
        ]

        reply, status = await self._run_loop(chat_id, state)
        if status in (LoopStatus.DONE, LoopStatus.DONE_MAX_ITERATIONS):
            await self._store.append(chat_id, Role.ASSISTANT, reply)
        return reply, status

    async def _run_loop(self, chat_id: str, state: LoopState) -> tuple[str, LoopStatus]:
        model = self._model
        if model is None:
            raise RuntimeError("chat model is not configured")

        while state.iteration_count < self._max_iterations:
            state.iteration_count += 1
            response = await model.complete(state.messages, self._tool_catalog)

            if not response.tool_calls:
                return response.content or EMPTY_REPLY, LoopStatus.DONE

            state.messages.append(
                ChatMessage(role="assistant", content=response.content, tool_calls=response.tool_calls)
            )
            context = ToolContext(conversation_id=chat_id, round_number=state.iteration_count)
            results = await asyncio.gather(
                *(self._tools.execute(call, context) for call in response.tool_calls)
            )
            state.messages.extend(_tool_message(result) for result in results)

            if any(result.payload.get("code") == NOT_CONNECTED_CODE for result in results):
                return NOT_CONNECTED_REPLY, LoopStatus.NOT_CONNECTED

        LOGGER.warning(
            "Chat %s hit the tool iteration cap (%s) without a final answer",
            chat_id,
            self._max_iterations,
        )
        return TOO_COMPLEX_REPLY, LoopStatus.DONE_MAX_ITERATIONS


def _tool_message(result: ToolCallResult) -> ChatMessage:
    return ChatMessage(
        role="tool",
        content=json.dumps(result.payload, ensure_ascii=False, default=str),
        tool_call_id=result.correlation_id,
    )
