"""
Turn Transports
===============

Where a turn runs: the in-process agent loop, or a hosted run whose SSE stream
is proxied. Selected once per turn from settings.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from dataclasses import dataclass

import aiohttp

from dexter_bridge.config.settings import Settings, get_settings

from .parser import SSEMessage

PARTIAL_MESSAGE_EVENT = "messages/partial"
FINAL_MESSAGE_EVENTS = frozenset({"messages", "messages/complete"})


class RemoteStreamError(Exception):
    """Raised when the hosted run cannot be started or its stream fails."""

    pass


@dataclass(frozen=True)
class LocalTransport:
    """Run the configured agent in-process."""

    kind: Literal["local"] = "local"


@dataclass(frozen=True)
class RemoteTransport:
    """Proxy the turn to a hosted deployment's ``/runs/stream`` endpoint."""

    deployment_url: str
    api_key: str
    assistant_id: str = "dexter"
    run_id_prefix: str = "run-"
    connect_timeout: float = 30.0
    kind: Literal["remote"] = "remote"

    @property
    def stream_url(self) -> str:
        return f"{self.deployment_url.rstrip('/')}/runs/stream"

    def headers(self, session_id: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "x-session-id": session_id,
        }

    def request_body(self, query: str, session_id: str) -> Dict[str, Any]:
        return {
            "assistant_id": self.assistant_id,
            "input": {"messages": [{"role": "human", "content": query}]},
            "stream_mode": ["messages-tuple"],
            "config": {
                "configurable": {
                    "x-session-id": session_id,
                    "session_id": session_id,
                },
            },
        }

    def create_session(self) -> aiohttp.ClientSession:
        """HTTP session for one proxied turn. Reads are unbounded; only connecting is timed."""
        timeout = aiohttp.ClientTimeout(total=None, connect=self.connect_timeout)
        return aiohttp.ClientSession(timeout=timeout)


Transport = Union[LocalTransport, RemoteTransport]


def select_transport(settings: Optional[Settings] = None) -> Transport:
    """Use the hosted deployment when both its URL and API key are configured."""
    settings = settings or get_settings()
    if settings.remote_enabled:
        return RemoteTransport(
            deployment_url=settings.langsmith_deployment_url or "",
            api_key=settings.langsmith_api_key or "",
            assistant_id=settings.remote_assistant_id,
            run_id_prefix=settings.remote_run_id_prefix,
            connect_timeout=settings.remote_connect_timeout,
        )
    return LocalTransport()


def message_text(message: Dict[str, Any]) -> str:
    """Text of a message chunk: string content, text parts of list content, or ``text``."""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                text = part.get("text")
                if isinstance(text, str):
                    parts.append(text)
        return "".join(parts)
    if content is None:
        text = message.get("text")
        if isinstance(text, str):
            return text
    return ""


class RemoteAnswerExtractor:
    """
    Picks answer text out of a hosted run's message events.

    Once a partial event has been seen, final events no longer produce deltas.
    Only messages whose id carries the top-level run prefix count; messages from
    nested runs (tool-calling sub-chains) are skipped.
    """

    def __init__(self, run_id_prefix: str = "run-") -> None:
        self.run_id_prefix = run_id_prefix
        self.seen_partial = False

    def _is_top_level(self, message: Any) -> bool:
        if not isinstance(message, dict):
            return False
        message_id = message.get("id")
        return isinstance(message_id, str) and message_id.startswith(self.run_id_prefix)

    def extract(self, sse_message: SSEMessage) -> str:
        """
        Answer delta carried by one SSE message.

        Returns:
            Delta text, empty when the message carries no answer text
        """
        if sse_message.event == PARTIAL_MESSAGE_EVENT:
            self.seen_partial = True
        elif sse_message.event in FINAL_MESSAGE_EVENTS:
            if self.seen_partial:
                return ""
        else:
            return ""

        payload = sse_message.data
        chunk = payload[0] if isinstance(payload, list) and payload else payload
        if not self._is_top_level(chunk):
            return ""
        return message_text(chunk)
