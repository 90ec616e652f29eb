"""Conversation orchestration: the session state machine and its channel."""

from tooltalk.orchestrator.channel import ChatChannel
from tooltalk.orchestrator.models import RoundResult, SessionState
from tooltalk.orchestrator.session import ChatSession

__all__ = ["ChatChannel", "ChatSession", "RoundResult", "SessionState"]
