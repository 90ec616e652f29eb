"""OpenAI-compatible chat completions adapter (typed tool calls).

Works against api.openai.com and any server speaking the same
``/chat/completions`` dialect. Tool calls arrive as structured objects with
an ``id`` that the matching ``tool`` message must echo.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

import httpx

from tooltalk.exceptions import BackendError, ResponseFormatError
from tooltalk.models.config import GenerationParams
from tooltalk.protocols import (
    CallStyle,
    Message,
    ModelReply,
    ReplyPart,
    TextPart,
    ToolCall,
    ToolCallPart,
    UnrecognizedPart,
    Usage,
)
from tooltalk.providers._http import DEFAULT_TIMEOUT, HTTPAdapter, env_base_url

if TYPE_CHECKING:
    from tooltalk.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"

# Returned by list_models() when the backend cannot list its models.
FALLBACK_MODELS = ["gpt-4", "gpt-4-turbo-preview", "gpt-3.5-turbo"]


def build_params(params: GenerationParams) -> dict[str, Any]:
    """Map GenerationParams onto chat-completions request fields.

    ``context_window`` is a local budget and is not sent.
    """
    payload: dict[str, Any] = {}
    if params.temperature is not None:
        payload["temperature"] = params.temperature
    if params.top_p is not None:
        payload["top_p"] = params.top_p
    if params.seed is not None:
        payload["seed"] = params.seed
    if params.max_output_tokens is not None:
        payload["max_tokens"] = params.max_output_tokens
    if params.repeat_penalty is not None:
        payload["frequency_penalty"] = params.repeat_penalty
    if params.extra:
        payload.update(params.extra)
    return payload


def encode_messages(transcript: Sequence[Message]) -> list[dict]:
    """Render the transcript as chat-completions messages.

    A tool message without a correlation id borrows the id of the call at
    the same position in the preceding assistant message (or its first
    call). With no candidate id at all it is sent as assistant text, since
    the API rejects uncorrelated tool messages.
    """
    out: list[dict] = []
    pending_ids: list[str] = []
    fallback_id: str | None = None
    for msg in transcript:
        if msg.role == "assistant":
            entry: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
            if msg.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments_json()},
                    }
                    for tc in msg.tool_calls
                ]
                pending_ids = [tc.id for tc in msg.tool_calls if tc.id]
                fallback_id = pending_ids[0] if pending_ids else None
            else:
                pending_ids, fallback_id = [], None
                entry["content"] = msg.content
            out.append(entry)
        elif msg.role == "tool":
            call_id = msg.tool_call_id
            if call_id is None:
                call_id = pending_ids[0] if pending_ids else fallback_id
                if call_id is not None:
                    logger.info("Using fallback tool call id %s", call_id)
            if call_id in pending_ids:
                pending_ids.remove(call_id)
            if call_id is None:
                logger.info("No tool call id found, sending tool output as assistant text")
                out.append({"role": "assistant", "content": msg.content})
            else:
                out.append({"role": "tool", "tool_call_id": call_id, "content": msg.content})
        else:
            pending_ids, fallback_id = [], None
            out.append({"role": msg.role, "content": msg.content})
    return out


def decode_reply(data: dict) -> ModelReply:
    """Parse a chat-completions response body into a ModelReply."""
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ResponseFormatError(
            f"Unexpected response format: missing choices/message. Response: {data}"
        ) from exc

    parts: list[ReplyPart] = []
    content = message.get("content")
    if content:
        parts.append(TextPart(content))
    for tc in message.get("tool_calls") or []:
        if tc.get("type", "function") != "function":
            parts.append(UnrecognizedPart(kind=f"tool_call:{tc.get('type')}", payload=tc))
            continue
        parts.append(ToolCallPart(ToolCall.from_openai(tc)))
    if message.get("refusal"):
        parts.append(UnrecognizedPart(kind="refusal", payload=message["refusal"]))
    if message.get("function_call"):
        parts.append(UnrecognizedPart(kind="function_call", payload=message["function_call"]))

    usage_data = data.get("usage") or {}
    usage = Usage(
        prompt_tokens=usage_data.get("prompt_tokens", 0) or 0,
        completion_tokens=usage_data.get("completion_tokens", 0) or 0,
    )
    return ModelReply(parts=tuple(parts), usage=usage)


class OpenAIAdapter(HTTPAdapter):
    """ProviderAdapter for OpenAI-compatible chat completions.

    Usage::

        with OpenAIAdapter(model="gpt-4o-mini", api_key="sk-...") as adapter:
            reply = adapter.submit([Message.user("Hello")], None, GenerationParams())
            print(reply.text)
    """

    backend = "openai"
    call_style = CallStyle.TYPED

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            model: Model name sent with every request.
            api_key: API key. Falls back to TOOLTALK_OPENAI_API_KEY.
            base_url: API base URL. Falls back to TOOLTALK_OPENAI_BASE_URL,
                then to https://api.openai.com/v1.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport override.

        Raises:
            ConfigError: If no API key is provided or found in environment.
        """
        key = self.require_key(self.backend, api_key)
        super().__init__(
            base_url or env_base_url(self.backend) or DEFAULT_BASE_URL,
            headers={"Authorization": f"Bearer {key}"},
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
        }
        if tools:
            payload["tools"] = [t.to_openai() for t in tools]
        payload.update(build_params(params))
        return decode_reply(self._post("/chat/completions", payload))

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        params: GenerationParams | None = None,
    ) -> str:
        transcript: list[Message] = []
        if system_prompt:
            transcript.append(Message.system(system_prompt))
        transcript.append(Message.user(prompt))
        return self.submit(transcript, None, params or GenerationParams()).text

    def list_models(self) -> list[str]:
        """Model ids from ``/models``, or a fixed fallback list on failure."""
        try:
            data = self._get("/models")
        except BackendError as exc:
            logger.error("Failed to list models: %s", exc)
            return list(FALLBACK_MODELS)
        models = [m.get("id") for m in data.get("data") or [] if m.get("id")]
        if not models:
            logger.error("No models found")
            return list(FALLBACK_MODELS)
        return models
