"""tooltalk: multi-turn LLM conversations with tool calling.

Drives a conversation between a model backend (OpenAI-compatible, Ollama or
Gemini) and a registry of tools, handling retries, text-embedded tool calls,
duplicate suppression, per-call timeouts and context compaction.
"""

from tooltalk._version import __version__

# Entry points
from tooltalk.api import generate, open_adapter, open_session

# Configuration
from tooltalk.models.config import GenerationParams, RetryConfig, SessionConfig

# Protocols and data types
from tooltalk.protocols import (
    CallStyle,
    Message,
    ModelReply,
    ProviderAdapter,
    TextPart,
    TokenCounter,
    ToolCall,
    ToolCallPart,
    UnrecognizedPart,
    Usage,
)

# Orchestration
from tooltalk.orchestrator import ChatChannel, ChatSession, RoundResult, SessionState
from tooltalk.retry import RetryPolicy, RetryState
from tooltalk.extraction import Extraction, QuoteRepairExtractor, ToolCallExtractor, repair_quotes
from tooltalk.engine import ContextCompactor, NullTokenCounter, TiktokenCounter

# Tools
from tooltalk.toolkit import ToolDefinition, ToolExecutor, ToolParameter, ToolRegistry, ToolResult

# Adapters
from tooltalk.providers import GeminiAdapter, OllamaAdapter, OpenAIAdapter, create_adapter

# Exceptions
from tooltalk.exceptions import (
    AuthError,
    BackendError,
    BackendUnavailableError,
    BadRequestError,
    ConfigError,
    DuplicateToolError,
    MalformedToolCallError,
    PermanentBackendError,
    RateLimitedError,
    ResponseFormatError,
    RetryExhaustedError,
    SessionCancelledError,
    SessionClosedError,
    SessionError,
    ToolError,
    ToolNotFoundError,
    ToolTalkError,
    ToolTimeoutError,
    TransientBackendError,
    UnrecognizedReplyError,
    UnsupportedBackendError,
)

__all__ = [
    "__version__",
    # Entry points
    "generate",
    "open_adapter",
    "open_session",
    # Configuration
    "GenerationParams",
    "RetryConfig",
    "SessionConfig",
    # Protocols and data types
    "CallStyle",
    "Message",
    "ModelReply",
    "ProviderAdapter",
    "TextPart",
    "TokenCounter",
    "ToolCall",
    "ToolCallPart",
    "UnrecognizedPart",
    "Usage",
    # Orchestration
    "ChatChannel",
    "ChatSession",
    "RoundResult",
    "SessionState",
    "RetryPolicy",
    "RetryState",
    "Extraction",
    "QuoteRepairExtractor",
    "ToolCallExtractor",
    "repair_quotes",
    "ContextCompactor",
    "NullTokenCounter",
    "TiktokenCounter",
    # Tools
    "ToolDefinition",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    # Adapters
    "GeminiAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "create_adapter",
    # Exceptions
    "AuthError",
    "BackendError",
    "BackendUnavailableError",
    "BadRequestError",
    "ConfigError",
    "DuplicateToolError",
    "MalformedToolCallError",
    "PermanentBackendError",
    "RateLimitedError",
    "ResponseFormatError",
    "RetryExhaustedError",
    "SessionCancelledError",
    "SessionClosedError",
    "SessionError",
    "ToolError",
    "ToolNotFoundError",
    "ToolTalkError",
    "ToolTimeoutError",
    "TransientBackendError",
    "UnrecognizedReplyError",
    "UnsupportedBackendError",
]
