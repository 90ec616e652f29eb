"""Ollama chat adapter (text-embedded tool calls).

Ollama models may return native ``tool_calls`` but frequently write the call
as JSON inside the message text instead. The adapter reports native calls as
ToolCallParts and leaves the text alone; the session runs the
ToolCallExtractor over text replies from adapters with
``CallStyle.TEXT_EMBEDDED``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

import httpx

from tooltalk.exceptions import ResponseFormatError
from tooltalk.models.config import GenerationParams
from tooltalk.protocols import (
    CallStyle,
    Message,
    ModelReply,
    ReplyPart,
    TextPart,
    ToolCall,
    ToolCallPart,
    Usage,
)
from tooltalk.providers._http import DEFAULT_TIMEOUT, HTTPAdapter, env_base_url

if TYPE_CHECKING:
    from tooltalk.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"

_NS_PER_SECOND = 1_000_000_000


def build_options(params: GenerationParams) -> dict[str, Any]:
    """Map GenerationParams onto Ollama's ``options`` object."""
    options: dict[str, Any] = {}
    if params.temperature is not None:
        options["temperature"] = params.temperature
    if params.top_p is not None:
        options["top_p"] = params.top_p
    if params.seed is not None:
        options["seed"] = params.seed
    if params.max_output_tokens is not None:
        options["num_predict"] = params.max_output_tokens
    if params.context_window is not None:
        options["num_ctx"] = params.context_window
    if params.repeat_penalty is not None:
        options["repeat_penalty"] = params.repeat_penalty
    if params.extra:
        options.update(params.extra)
    return options


def encode_messages(transcript: Sequence[Message]) -> list[dict]:
    out: list[dict] = []
    for msg in transcript:
        entry: dict[str, Any] = {"role": msg.role, "content": msg.content}
        if msg.tool_calls:
            entry["tool_calls"] = [
                {"function": {"name": tc.name, "arguments": tc.arguments}}
                for tc in msg.tool_calls
            ]
        if msg.role == "tool" and msg.name:
            entry["tool_name"] = msg.name
        out.append(entry)
    return out


def log_usage(data: dict) -> Usage:
    """Log prompt/eval token counts and speeds; return them as Usage."""
    prompt_count = data.get("prompt_eval_count", 0) or 0
    eval_count = data.get("eval_count", 0) or 0
    prompt_secs = (data.get("prompt_eval_duration") or 0) / _NS_PER_SECOND
    eval_secs = (data.get("eval_duration") or 0) / _NS_PER_SECOND
    prompt_speed = prompt_count / prompt_secs if prompt_secs else 0.0
    eval_speed = eval_count / eval_secs if eval_secs else 0.0
    logger.info(
        "token usage: prompt_count: %d, eval_count: %d, "
        "prompt_speed: %.2f tokens/s, eval_speed: %.2f tokens/s",
        prompt_count, eval_count, prompt_speed, eval_speed,
    )
    return Usage(prompt_tokens=prompt_count, completion_tokens=eval_count)


class OllamaAdapter(HTTPAdapter):
    """ProviderAdapter for a local or remote Ollama server.

    Usage::

        adapter = OllamaAdapter(model="qwen3:8b")
        text = adapter.generate("Say hi")
    """

    backend = "ollama"
    call_style = CallStyle.TEXT_EMBEDDED

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        super().__init__(
            base_url or env_base_url(self.backend) or DEFAULT_BASE_URL,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.model = model

    def submit(
        self,
        transcript: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        params: GenerationParams,
    ) -> ModelReply:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": encode_messages(transcript),
            "stream": False,
        }
        if tools:
            payload["tools"] = [t.to_ollama() for t in tools]
        options = build_options(params)
        if options:
            payload["options"] = options

        data = self._post("/api/chat", payload)
        message = data.get("message")
        if not isinstance(message, dict):
            raise ResponseFormatError(f"Unexpected response format: missing 'message'. Response: {data}")

        parts: list[ReplyPart] = []
        if message.get("content"):
            parts.append(TextPart(message["content"]))
        for tc in message.get("tool_calls") or []:
            func = tc.get("function") or {}
            arguments = func.get("arguments") or {}
            if isinstance(arguments, str):
                parts.append(ToolCallPart(ToolCall(
                    id=tc.get("id"), name=func.get("name", ""), raw_arguments=arguments,
                )))
            else:
                parts.append(ToolCallPart(ToolCall(
                    id=tc.get("id"), name=func.get("name", ""), arguments=dict(arguments),
                )))
        return ModelReply(parts=tuple(parts), usage=log_usage(data))

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        params: GenerationParams | None = None,
    ) -> str:
        payload: dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if system_prompt:
            payload["system"] = system_prompt
        options = build_options(params or GenerationParams())
        if options:
            payload["options"] = options
        data = self._post("/api/generate", payload)
        log_usage(data)
        response = data.get("response")
        if not isinstance(response, str):
            raise ResponseFormatError(f"Unexpected response format: missing 'response'. Response: {data}")
        return response

    def list_models(self) -> list[str]:
        data = self._get("/api/tags")
        return [m["name"] for m in data.get("models") or [] if m.get("name")]
