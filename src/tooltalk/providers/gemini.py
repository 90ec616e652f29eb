"""Gemini generateContent adapter (typed calls with history replay).

Gemini answers with ``functionCall`` parts and expects prior model turns to
come back exactly as it produced them, including opaque fields such as
``thoughtSignature``. The adapter therefore keeps each reply's native parts
on ``ModelReply.raw``; the session stores them on the assistant Message and
``encode_contents`` replays them verbatim.
"""

from __future__ import annotations

import json
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
    UnrecognizedPart,
    Usage,
)
from tooltalk.providers._http import DEFAULT_TIMEOUT, HTTPAdapter, env_base_url

if TYPE_CHECKING:
    from tooltalk.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def build_generation_config(params: GenerationParams) -> dict[str, Any]:
    config: dict[str, Any] = {}
    if params.temperature is not None:
        config["temperature"] = params.temperature
    if params.top_p is not None:
        config["topP"] = params.top_p
    if params.seed is not None:
        config["seed"] = params.seed
    if params.max_output_tokens is not None:
        config["maxOutputTokens"] = params.max_output_tokens
    if params.repeat_penalty is not None:
        config["frequencyPenalty"] = params.repeat_penalty
    if params.extra:
        config.update(params.extra)
    return config


def _function_response(name: str, content: str) -> dict:
    try:
        decoded = json.loads(content)
    except ValueError:
        decoded = None
    response = decoded if isinstance(decoded, dict) else {"result": content}
    return {"functionResponse": {"name": name, "response": response}}


def encode_contents(transcript: Sequence[Message]) -> tuple[dict | None, list[dict]]:
    """Render the transcript as (systemInstruction, contents).

    Consecutive tool messages are grouped into one ``user`` content of
    ``functionResponse`` parts. A tool message without a name takes the name
    of the call at the same position in the preceding model turn.
    """
    system: dict | None = None
    contents: list[dict] = []
    pending_names: list[str] = []
    tool_group: list[dict] | None = None

    for msg in transcript:
        if msg.role == "tool":
            name = msg.name or (pending_names[0] if pending_names else "")
            if name in pending_names:
                pending_names.remove(name)
            part = _function_response(name, msg.content)
            if tool_group is None:
                tool_group = [part]
                contents.append({"role": "user", "parts": tool_group})
            else:
                tool_group.append(part)
            continue
        tool_group = None

        if msg.role == "system":
            system = {"parts": [{"text": msg.content}]}
        elif msg.role == "user":
            contents.append({"role": "user", "parts": [{"text": msg.content}]})
            pending_names = []
        else:
            if msg.raw:
                parts = [dict(p) for p in msg.raw]
            else:
                parts = []
                if msg.content:
                    parts.append({"text": msg.content})
                for tc in msg.tool_calls:
                    call: dict[str, Any] = {"name": tc.name, "args": tc.arguments}
                    if tc.id:
                        call["id"] = tc.id
                    parts.append({"functionCall": call})
            contents.append({"role": "model", "parts": parts})
            pending_names = [tc.name for tc in msg.tool_calls]
    return system, contents


def decode_reply(data: dict) -> ModelReply:
    """Parse a generateContent body into a ModelReply.

    Text parts flagged ``thought`` are kept for replay but not delivered.
    Any other part kind becomes an UnrecognizedPart.
    """
    usage_data = data.get("usageMetadata") or {}
    usage = Usage(
        prompt_tokens=usage_data.get("promptTokenCount", 0) or 0,
        completion_tokens=usage_data.get("candidatesTokenCount", 0) or 0,
    )
    candidates = data.get("candidates")
    if not candidates:
        feedback = data.get("promptFeedback")
        if feedback is not None:
            return ModelReply(
                parts=(UnrecognizedPart(kind="blocked", payload=feedback),), usage=usage
            )
        raise ResponseFormatError(f"Unexpected response format: no candidates. Response: {data}")

    candidate = candidates[0]
    content = candidate.get("content") or {}
    native = content.get("parts")
    if not native:
        reason = candidate.get("finishReason", "UNKNOWN")
        return ModelReply(
            parts=(UnrecognizedPart(kind=f"finishReason:{reason}", payload=candidate),),
            usage=usage,
        )

    parts: list[ReplyPart] = []
    for part in native:
        if "functionCall" in part:
            fc = part["functionCall"]
            parts.append(ToolCallPart(ToolCall(
                id=fc.get("id"), name=fc.get("name", ""), arguments=dict(fc.get("args") or {}),
            )))
        elif "text" in part:
            if not part.get("thought"):
                parts.append(TextPart(part["text"]))
        else:
            kind = next((k for k in part if k != "thoughtSignature"), "empty")
            parts.append(UnrecognizedPart(kind=kind, payload=part))
    return ModelReply(parts=tuple(parts), usage=usage, raw=tuple(native))


class GeminiAdapter(HTTPAdapter):
    """ProviderAdapter for the Gemini REST API.

    Usage::

        adapter = GeminiAdapter(model="gemini-2.5-flash", api_key="...")
        reply = adapter.submit(transcript, tools, GenerationParams())
    """

    backend = "gemini"
    call_style = CallStyle.TYPED_REPLAY

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        key = self.require_key(self.backend, api_key)
        super().__init__(
            base_url or env_base_url(self.backend) or DEFAULT_BASE_URL,
            headers={"x-goog-api-key": key},
            timeout=timeout,
            transport=transport,
        )
        self.model = model.removeprefix("models/")

    def _generate_content(self, payload: dict) -> dict:
        return self._post(f"/models/{self.model}:generateContent", payload)

    def submit(
        self,
        transcript: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        params: GenerationParams,
    ) -> ModelReply:
        system, contents = encode_contents(transcript)
        payload: dict[str, Any] = {"contents": contents}
        if system is not None:
            payload["systemInstruction"] = system
        if tools:
            payload["tools"] = [{"functionDeclarations": [t.to_gemini() for t in tools]}]
        config = build_generation_config(params)
        if config:
            payload["generationConfig"] = config
        return decode_reply(self._generate_content(payload))

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
        """Models that support generateContent, without the ``models/`` prefix."""
        data = self._get("/models")
        names: list[str] = []
        for m in data.get("models") or []:
            methods = m.get("supportedGenerationMethods") or []
            if "generateContent" in methods and m.get("name"):
                names.append(m["name"].removeprefix("models/"))
        return names
