"""Backend adapters and the adapter factory.

Each adapter implements the ProviderAdapter protocol over httpx. Use
``create_adapter`` to pick one by backend identifier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tooltalk.exceptions import UnsupportedBackendError
from tooltalk.providers._http import DEFAULT_TIMEOUT, HTTPAdapter, raise_for_status
from tooltalk.providers.gemini import GeminiAdapter
from tooltalk.providers.ollama import OllamaAdapter
from tooltalk.providers.openai import OpenAIAdapter

if TYPE_CHECKING:
    import httpx

    from tooltalk.protocols import ProviderAdapter

ADAPTERS: dict[str, type[HTTPAdapter]] = {
    "openai": OpenAIAdapter,
    "ollama": OllamaAdapter,
    "gemini": GeminiAdapter,
}


def create_adapter(
    backend: str,
    model: str,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> ProviderAdapter:
    """Build the adapter for ``backend``.

    Raises:
        UnsupportedBackendError: For any identifier without an adapter,
            including "anthropic".
        ConfigError: If the backend needs an API key and none is available.
    """
    adapter_cls = ADAPTERS.get(backend.lower())
    if adapter_cls is None:
        raise UnsupportedBackendError(backend)
    return adapter_cls(
        model,
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        transport=transport,
    )


__all__ = [
    "ADAPTERS",
    "GeminiAdapter",
    "HTTPAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "create_adapter",
    "raise_for_status",
]
