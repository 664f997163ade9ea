"""
Agent Contract
==============

Event types, chat history and the loader for the pluggable research agent.
"""

from .events import AgentEvent, ToolStart, ToolEnd, ToolError, Done
from .history import ChatHistory
from .loader import Agent, AgentConfigError, create_agent, load_agent_factory

__all__ = [
    "AgentEvent",
    "ToolStart",
    "ToolEnd",
    "ToolError",
    "Done",
    "ChatHistory",
    "Agent",
    "AgentConfigError",
    "create_agent",
    "load_agent_factory",
]
