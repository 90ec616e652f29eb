"""Configuration models for tooltalk."""

from tooltalk.models.config import GenerationParams, RetryConfig, SessionConfig

__all__ = ["GenerationParams", "RetryConfig", "SessionConfig"]
