"""
Hosted Turn Runner
==================

Server-side entry point for a hosted deployment: answers one turn from graph
state without streaming. The remote transport of another bridge instance talks
to a deployment that runs this.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from dexter_bridge.config.logging import get_logger

from .agent import Agent, ChatHistory, Done, create_agent
from .storage import SessionHistoryStore, get_history_store

logger = get_logger(__name__)

NO_INPUT_ANSWER = "No input provided."
NO_RESPONSE_ANSWER = "No response generated."


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part if isinstance(part, str) else str(part.get("text") or "")
            for part in content
            if isinstance(part, str) or (isinstance(part, dict) and part.get("type") == "text")
        )
    return "" if content is None else str(content)


def resolve_query(state: Mapping[str, Any]) -> str:
    """Latest human message in the state, else its ``input`` field."""
    messages: List[Any] = state.get("messages") or []
    for message in reversed(messages):
        if not isinstance(message, Mapping):
            continue
        kind = message.get("type") or message.get("role")
        if kind in ("human", "user"):
            return _content_text(message.get("content"))

    value = state.get("input")
    return value if isinstance(value, str) else ""


def resolve_session_id(
    state: Mapping[str, Any], configurable: Optional[Mapping[str, Any]] = None
) -> Optional[str]:
    """Session id from the ``x-session-id`` configurable, else from the state."""
    header_session = (configurable or {}).get("x-session-id")
    if isinstance(header_session, str) and header_session.strip():
        return header_session.strip()

    state_session = state.get("session_id")
    if isinstance(state_session, str) and state_session.strip():
        return state_session.strip()
    return None


async def run_hosted_turn(
    state: Mapping[str, Any],
    configurable: Optional[Mapping[str, Any]] = None,
    history_store: Optional[SessionHistoryStore] = None,
    agent_provider: Optional[Callable[[], Awaitable[Agent]]] = None,
) -> Dict[str, Any]:
    """
    Answer one turn and persist it under its session id.

    Args:
        state: Graph state with ``messages``, ``input`` and ``session_id``
        configurable: Run configuration; ``x-session-id`` takes precedence
        history_store: Store override
        agent_provider: Agent override

    Returns:
        State update with ``result`` and an ``ai`` message
    """
    query = resolve_query(state).strip()
    if not query:
        return {"result": NO_INPUT_ANSWER, "messages": [{"type": "ai", "content": NO_INPUT_ANSWER}]}

    session_id = resolve_session_id(state, configurable)
    store = history_store or get_history_store()

    history = ChatHistory()
    if session_id:
        stored = await store.load(session_id)
        if stored:
            history.load_turns(stored)
    history.save_user_query(query)

    agent = await (agent_provider or create_agent)()

    answer = ""
    async for event in agent.run(query, history):
        if isinstance(event, Done):
            answer = event.answer

    if not answer:
        answer = NO_RESPONSE_ANSWER

    if session_id:
        history.save_answer(answer)
        last = history.last_turn()
        if last is not None and last.answer:
            await store.append(session_id, last)
        logger.info("Hosted turn answered", session_id=session_id, answer_length=len(answer))

    return {"result": answer, "messages": [{"type": "ai", "content": answer}]}
