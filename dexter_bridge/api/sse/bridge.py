"""
Streaming Bridge
================

Drives one chat turn and streams it to the client as protocol events.

A turn runs either through the in-process agent (tool events are correlated to
stable call ids and the finished turn is written to session history) or by
proxying a hosted run and turning its message events into text deltas.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Optional
from enum import Enum
import time

import aiohttp

from dexter_bridge.config.settings import Settings, get_settings
from dexter_bridge.config.logging import get_logger
from dexter_bridge.core.agent import (
    Agent,
    AgentEvent,
    ChatHistory,
    ToolStart,
    ToolEnd,
    ToolError,
    Done,
    create_agent,
)
from dexter_bridge.core.errors import classify_error
from dexter_bridge.core.storage import SessionHistoryStore, get_history_store
from dexter_bridge.models.schemas import Turn

from .correlator import ToolCallCorrelator
from .emitter import ProtocolEmitter
from .parser import aiter_sse_messages
from .sink import OutboundSink, SinkClosedError
from .transports import (
    LocalTransport,
    RemoteAnswerExtractor,
    RemoteStreamError,
    RemoteTransport,
    Transport,
    select_transport,
)

logger = get_logger(__name__)

AgentProvider = Callable[[], Awaitable[Agent]]
HTTPSessionFactory = Callable[[RemoteTransport], Any]


class BridgeState(str, Enum):
    """Lifecycle of one streamed turn."""

    IDLE = "idle"
    STARTED = "started"
    STREAMING = "streaming"
    FINISHED = "finished"
    ERRORED = "errored"


class BridgeTurn:
    """Per-turn state: the emitter, the tool-call table and the lifecycle state."""

    def __init__(self, query: str, session_id: str, sink: OutboundSink) -> None:
        self.query = query
        self.session_id = session_id
        self.emitter = ProtocolEmitter(sink)
        self.correlator = ToolCallCorrelator()
        self.state = BridgeState.IDLE
        self.answer: Optional[str] = None
        self.summary: Optional[str] = None


class StreamingBridge:
    """
    Bridge between chat turns and the outbound event stream.

    Interfaces with the local agent or a hosted deployment while streaming
    incremental updates to the client sink.
    """

    def __init__(
        self,
        history_store: Optional[SessionHistoryStore] = None,
        settings: Optional[Settings] = None,
        agent_provider: Optional[AgentProvider] = None,
        http_session_factory: Optional[HTTPSessionFactory] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._history_store = history_store
        self._agent_provider = agent_provider or (lambda: create_agent(self.settings))
        self._http_session_factory = http_session_factory or (
            lambda transport: transport.create_session()
        )
        self.logger: Any = logger.bind(component="streaming_bridge")

    @property
    def history_store(self) -> SessionHistoryStore:
        if self._history_store is None:
            self._history_store = get_history_store()
        return self._history_store

    async def stream_turn(
        self,
        query: str,
        session_id: str,
        sink: OutboundSink,
        transport: Optional[Transport] = None,
    ) -> BridgeTurn:
        """
        Run one turn to completion, writing protocol events to the sink.

        Transport and agent failures end the stream with a single ``error`` event;
        they are not raised. The sink is always closed on return.

        Args:
            query: Non-empty user query
            session_id: Session key for history replay and persistence
            sink: Outbound byte sink
            transport: Transport override, selected from settings if omitted

        Returns:
            The finished turn state

        Raises:
            ValueError: If the query is empty
        """
        if not query or not query.strip():
            raise ValueError("Query text is required")

        turn = BridgeTurn(query, session_id, sink)
        transport = transport or select_transport(self.settings)
        log = self.logger.bind(
            session_id=session_id,
            message_id=turn.emitter.message_id,
            transport=transport.kind,
        )
        start_time = time.time()

        try:
            await turn.emitter.start()
            turn.state = BridgeState.STARTED

            if isinstance(transport, LocalTransport):
                await self._run_local(turn, log)
            elif isinstance(transport, RemoteTransport):
                await self._run_remote(turn, transport, log)
            else:
                raise TypeError(f"Unsupported transport: {transport!r}")

            turn.state = BridgeState.FINISHED
        except SinkClosedError as e:
            turn.state = BridgeState.ERRORED
            log.info("Client stream closed, stopping turn", reason=str(e))
        except Exception as e:
            error_text = str(e) or type(e).__name__
            if turn.emitter.terminated and turn.answer is not None:
                # The client already received the answered turn
                turn.state = BridgeState.FINISHED
                log.warning(
                    "Turn cleanup failed after finish",
                    exception_type=type(e).__name__,
                    error=error_text,
                )
            else:
                turn.state = BridgeState.ERRORED
                log.error(
                    "Turn failed",
                    error_type=classify_error(error_text),
                    exception_type=type(e).__name__,
                    error=error_text,
                )
                await turn.emitter.error(error_text)
        finally:
            await turn.emitter.close()

        log.info(
            "Turn stream closed",
            state=turn.state.value,
            events_sent=turn.emitter.events_sent,
            duration=time.time() - start_time,
        )

        if turn.state is BridgeState.FINISHED and isinstance(transport, LocalTransport):
            await self._persist_turn(turn, log)

        return turn

    async def _run_local(self, turn: BridgeTurn, log: Any) -> None:
        history = ChatHistory(self.settings.model)
        stored = await self.history_store.load(turn.session_id)
        if stored:
            history.load_turns(stored)
        history.save_user_query(turn.query)

        agent = await self._agent_provider()
        events: AsyncIterator[AgentEvent] = agent.run(turn.query, history)

        try:
            async for event in events:
                turn.state = BridgeState.STREAMING
                if await self._handle_agent_event(turn, event, log):
                    break
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if turn.answer is None:
            # Agent stopped without an answer: close the turn with no text block
            await turn.emitter.finish()
        else:
            history.save_answer(turn.answer)
            last = history.last_turn()
            if last is not None:
                turn.summary = last.summary

    async def _handle_agent_event(self, turn: BridgeTurn, event: AgentEvent, log: Any) -> bool:
        """Map one agent event to protocol events. Returns True once the turn is answered."""
        emitter = turn.emitter

        if isinstance(event, ToolStart):
            call_id = turn.correlator.assign(event.tool)
            log.debug("Tool started", tool=event.tool, call_id=call_id)
            await emitter.tool_input(call_id, event.tool, event.args)
        elif isinstance(event, ToolEnd):
            call_id = turn.correlator.resolve(event.tool)
            log.debug("Tool finished", tool=event.tool, call_id=call_id)
            await emitter.tool_output(call_id, event.result)
        elif isinstance(event, ToolError):
            call_id = turn.correlator.resolve(event.tool)
            log.warning("Tool failed", tool=event.tool, call_id=call_id, error=event.error)
            await emitter.tool_output(call_id, f"Error: {event.error}")
        elif isinstance(event, Done):
            turn.answer = event.answer or ""
            await emitter.text_start()
            await emitter.text_delta(turn.answer)
            await emitter.text_end()
            await emitter.finish()
            return True
        else:
            log.warning("Ignoring unknown agent event", event_type=type(event).__name__)
        return False

    async def _run_remote(self, turn: BridgeTurn, transport: RemoteTransport, log: Any) -> None:
        emitter = turn.emitter
        extractor = RemoteAnswerExtractor(transport.run_id_prefix)

        async with self._http_session_factory(transport) as session:
            try:
                async with session.post(
                    transport.stream_url,
                    json=transport.request_body(turn.query, turn.session_id),
                    headers=transport.headers(turn.session_id),
                ) as response:
                    if response.status >= 400:
                        try:
                            body = await response.text()
                        except Exception:
                            body = ""
                        log.warning("Hosted run rejected", status=response.status)
                        raise RemoteStreamError(body or "Unknown error")

                    async for message in aiter_sse_messages(response.content.iter_any()):
                        turn.state = BridgeState.STREAMING
                        delta = extractor.extract(message)
                        if not delta:
                            continue
                        if not emitter.text_open:
                            await emitter.text_start()
                        await emitter.text_delta(delta)
            except aiohttp.ClientError as e:
                raise RemoteStreamError(f"Hosted run stream failed: {e}") from e

        # finish() ends the text block first when one was opened
        await emitter.finish()

    async def _persist_turn(self, turn: BridgeTurn, log: Any) -> None:
        """Write the answered turn to session history. Failures are logged, not raised."""
        if not turn.answer:
            return
        try:
            await self.history_store.append(
                turn.session_id,
                Turn(query=turn.query, answer=turn.answer, summary=turn.summary),
            )
        except Exception as e:
            log.warning("Failed to persist turn", error=str(e))


_streaming_bridge: Optional[StreamingBridge] = None


def get_streaming_bridge() -> StreamingBridge:
    """Get global streaming bridge instance."""
    global _streaming_bridge
    if _streaming_bridge is None:
        _streaming_bridge = StreamingBridge()
    return _streaming_bridge


def reset_streaming_bridge() -> None:
    """Drop the global bridge so the next call picks up fresh settings."""
    global _streaming_bridge
    _streaming_bridge = None
