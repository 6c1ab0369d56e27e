from __future__ import annotations

import json
from typing import Any, Protocol, Sequence

import httpx

from aide.config import LLMConfig
from aide.errors import LLMError
from aide.types import ChatMessage, ModelReply, ToolCall


class ChatModel(Protocol):
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelReply: ...


class ChatCompletionClient:
    """OpenAI-compatible ``/chat/completions`` client with function tools."""

    def __init__(self, config: LLMConfig, http_client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._http = http_client

    @property
    def model(self) -> str:
        return self._config.model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[dict[str, Any]] | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ModelReply:
        if not messages:
            raise LLMError("messages cannot be empty", error_type="invalid_request_error")

        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [m.to_payload() for m in messages],
            "temperature": self._config.temperature if temperature is None else temperature,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        body = await self._post(payload)
        return _parse_reply(body)

    async def summarize(self, system: str, prompt: str, max_tokens: int = 500) -> str:
        reply = await self.complete(
            [ChatMessage(role="system", content=system), ChatMessage(role="user", content=prompt)],
            temperature=0.3,
            max_tokens=max_tokens,
        )
        if not reply.content:
            raise LLMError("model returned an empty response", error_type="invalid_response_error")
        return reply.content

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self._config.base_url.rstrip('/')}/chat/completions"

        try:
            if self._http is not None:
                response = await self._http.post(url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise LLMError(f"LLM request timed out: {exc}", error_type="timeout_error") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}", error_type="network_error") from exc

        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise LLMError("LLM response is not JSON", error_type="invalid_response_error") from exc


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise LLMError("LLM authentication failed", error_type="auth_error", status_code=status)
    if status == 429:
        raise LLMError("LLM rate limit", error_type="rate_limit_error", status_code=status)
    if 500 <= status <= 599:
        raise LLMError("LLM server error", error_type="server_error", status_code=status)
    if status == 400:
        raise LLMError(
            f"LLM bad request: {response.text}",
            error_type="invalid_request_error",
            status_code=status,
        )
    raise LLMError(f"LLM unexpected error: {response.text}", error_type="http_error", status_code=status)


def _parse_reply(body: dict[str, Any]) -> ModelReply:
    choices = body.get("choices") or []
    if not choices:
        raise LLMError("LLM response missing choices", error_type="invalid_response_error")

    message = (choices[0] or {}).get("message") or {}
    content = message.get("content")
    if isinstance(content, list):
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    if isinstance(content, str):
        content = content.strip() or None
    else:
        content = None

    tool_calls: list[ToolCall] = []
    for raw in message.get("tool_calls") or []:
        function = raw.get("function") or {}
        arguments = function.get("arguments")
        tool_calls.append(
            ToolCall(
                id=str(raw.get("id", "")),
                name=str(function.get("name", "")),
                arguments=arguments if isinstance(arguments, str) else json.dumps(arguments or {}),
            )
        )

    return ModelReply(content=content, tool_calls=tuple(tool_calls))
