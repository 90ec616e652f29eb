"""Convenience entry points that build adapters and sessions from config."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from tooltalk.models.config import SessionConfig
from tooltalk.orchestrator.session import ChatSession
from tooltalk.providers import create_adapter
from tooltalk.retry import RetryPolicy

if TYPE_CHECKING:
    import httpx

    from tooltalk.protocols import ProviderAdapter
    from tooltalk.toolkit.registry import ToolRegistry


def open_adapter(
    config: SessionConfig, *, transport: httpx.BaseTransport | None = None
) -> ProviderAdapter:
    """Build the adapter named by ``config.backend``."""
    return create_adapter(
        config.backend,
        config.model,
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.request_timeout,
        transport=transport,
    )


def open_session(
    config: SessionConfig | None = None,
    registry: ToolRegistry | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> ChatSession:
    """Build an adapter and a ChatSession that owns it.

    Usage::

        with open_session(SessionConfig.from_env(), registry) as chat:
            print(chat.send("Hello").text)
    """
    config = config or SessionConfig.from_env()
    adapter = open_adapter(config, transport=transport)
    return ChatSession(adapter, registry, config, owns_adapter=True, **kwargs)


def generate(
    config: SessionConfig,
    prompt: str,
    *,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """One-shot, tool-less generation under the config's retry policy."""
    adapter = open_adapter(config, transport=transport)
    try:
        return RetryPolicy(config.retry).call(
            adapter.generate,
            prompt,
            system_prompt=config.system_prompt,
            params=config.params,
        )
    finally:
        adapter.close()
