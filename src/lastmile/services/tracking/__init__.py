"""Agent session supervision."""

from .session import AgentSession

__all__ = ["AgentSession"]
