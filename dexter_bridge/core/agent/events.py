"""
Agent Events
============

Closed set of events a research agent produces while answering one query.
"""

from typing import Any, Dict, Union
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ToolStart:
    """A tool invocation has started."""

    tool: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolEnd:
    """A tool invocation finished successfully."""

    tool: str
    result: Any = None


@dataclass(frozen=True)
class ToolError:
    """A tool invocation failed. The turn continues."""

    tool: str
    error: str


@dataclass(frozen=True)
class Done:
    """The agent produced its final answer."""

    answer: str = ""


AgentEvent = Union[ToolStart, ToolEnd, ToolError, Done]
