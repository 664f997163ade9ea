"""
Agent Loader
============

Resolves the configured research agent. The agent itself (model calls, tool
selection, tool implementations) lives outside this service and is plugged in
through an import path of the form ``"package.module:factory"``.
"""

from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, runtime_checkable
import importlib
import inspect

from dexter_bridge.config.settings import Settings, get_settings
from dexter_bridge.config.logging import get_logger

from .events import AgentEvent
from .history import ChatHistory

logger = get_logger(__name__)


class AgentConfigError(Exception):
    """Raised when the agent factory cannot be resolved or returns no agent."""

    pass


@runtime_checkable
class Agent(Protocol):
    """A tool-calling agent that answers one query at a time."""

    def run(self, query: str, history: ChatHistory) -> AsyncIterator[AgentEvent]:
        """Answer the query, yielding tool events and finally a Done event."""
        ...


AgentFactory = Callable[..., Any]


def load_agent_factory(path: Optional[str]) -> AgentFactory:
    """
    Import an agent factory from ``"module:callable"``.

    Args:
        path: Import path of the factory

    Returns:
        Factory callable

    Raises:
        AgentConfigError: If the path is missing or does not resolve to a callable
    """
    if not path:
        raise AgentConfigError(
            "No local agent configured. Set DEXTER_AGENT_FACTORY or a hosted deployment."
        )

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise AgentConfigError(f"Agent factory must look like 'module:callable', got {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AgentConfigError(f"Cannot import agent module {module_name!r}: {e}") from e

    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise AgentConfigError(f"{module_name!r} has no attribute {attr!r}")

    if not callable(factory):
        raise AgentConfigError(f"Agent factory {path!r} is not callable")
    return factory


async def create_agent(settings: Optional[Settings] = None) -> Agent:
    """
    Build the local agent from settings.

    The factory receives ``model``, ``model_provider`` and ``max_iterations`` keyword
    arguments (unset values are omitted) and may be sync or async.
    """
    settings = settings or get_settings()
    factory = load_agent_factory(settings.agent_factory)

    kwargs: Dict[str, Any] = {"max_iterations": settings.max_iterations}
    if settings.model:
        kwargs["model"] = settings.model
    if settings.model_provider:
        kwargs["model_provider"] = settings.model_provider

    agent = factory(**kwargs)
    if inspect.isawaitable(agent):
        agent = await agent

    if not isinstance(agent, Agent):
        raise AgentConfigError(f"Agent factory {settings.agent_factory!r} returned {agent!r}")

    logger.debug("Local agent created", factory=settings.agent_factory, model=settings.model)
    return agent
