"""
Protocol Emitter
================

Encodes protocol events onto an outbound sink and enforces their bracketing:
``start`` and ``start-step`` before any content, text blocks opened before
deltas, ``finish-step`` and ``finish`` last, nothing after ``finish`` or ``error``.
"""

from typing import Any, Optional
import uuid

from dexter_bridge.config.logging import get_logger

from .events import (
    ProtocolEvent,
    ProtocolEventType,
    format_protocol_event,
    create_start_event,
    create_start_step_event,
    create_tool_input_event,
    create_tool_output_event,
    create_text_start_event,
    create_text_delta_event,
    create_text_end_event,
    create_finish_step_event,
    create_finish_event,
    create_error_event,
)
from .sink import OutboundSink, SinkClosedError

logger = get_logger(__name__)

_CONTENT_TYPES = {
    ProtocolEventType.TOOL_INPUT_AVAILABLE.value,
    ProtocolEventType.TOOL_OUTPUT_AVAILABLE.value,
    ProtocolEventType.TEXT_START.value,
    ProtocolEventType.TEXT_DELTA.value,
    ProtocolEventType.TEXT_END.value,
}


class ProtocolError(Exception):
    """Raised when an event would break the outbound event ordering."""

    pass


class ProtocolEmitter:
    """Writes one turn's protocol events to a sink."""

    def __init__(
        self,
        sink: OutboundSink,
        message_id: Optional[str] = None,
        text_id: Optional[str] = None,
    ) -> None:
        self.sink = sink
        self.message_id = message_id or str(uuid.uuid4())
        self.text_id = text_id or str(uuid.uuid4())
        self.events_sent = 0

        self._started = False
        self._step_open = False
        self._text_open = False
        self._text_started = False
        self._terminated = False
        self._broken = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def text_started(self) -> bool:
        """Whether a text block was ever opened in this turn."""
        return self._text_started

    @property
    def text_open(self) -> bool:
        return self._text_open

    @property
    def terminated(self) -> bool:
        """Whether ``finish`` or ``error`` has been emitted."""
        return self._terminated

    @property
    def writable(self) -> bool:
        """Whether another event can still reach the sink."""
        return not self._broken and not self._terminated

    def _check_order(self, event_type: str) -> None:
        if self._terminated:
            raise ProtocolError(f"Cannot emit '{event_type}' after the stream finished")

        if event_type == ProtocolEventType.START.value:
            if self._started:
                raise ProtocolError("Stream already started")
            return

        if not self._started:
            raise ProtocolError(f"Cannot emit '{event_type}' before 'start'")

        if event_type == ProtocolEventType.START_STEP.value:
            if self._step_open:
                raise ProtocolError("A step is already open")
        elif event_type in _CONTENT_TYPES:
            if not self._step_open:
                raise ProtocolError(f"Cannot emit '{event_type}' outside a step")
            if event_type == ProtocolEventType.TEXT_START.value and self._text_open:
                raise ProtocolError("A text block is already open")
            if (
                event_type in (ProtocolEventType.TEXT_DELTA.value, ProtocolEventType.TEXT_END.value)
                and not self._text_open
            ):
                raise ProtocolError(f"Cannot emit '{event_type}' without 'text-start'")
        elif event_type == ProtocolEventType.FINISH_STEP.value:
            if not self._step_open:
                raise ProtocolError("No open step to finish")
            if self._text_open:
                raise ProtocolError("Text block must end before 'finish-step'")
        elif event_type == ProtocolEventType.FINISH.value:
            if self._step_open:
                raise ProtocolError("Step must finish before 'finish'")
        elif event_type != ProtocolEventType.ERROR.value:
            raise ProtocolError(f"Unknown protocol event type '{event_type}'")

    def _apply(self, event_type: str) -> None:
        if event_type == ProtocolEventType.START.value:
            self._started = True
        elif event_type == ProtocolEventType.START_STEP.value:
            self._step_open = True
        elif event_type == ProtocolEventType.TEXT_START.value:
            self._text_open = True
            self._text_started = True
        elif event_type == ProtocolEventType.TEXT_END.value:
            self._text_open = False
        elif event_type == ProtocolEventType.FINISH_STEP.value:
            self._step_open = False
        elif event_type in (ProtocolEventType.FINISH.value, ProtocolEventType.ERROR.value):
            self._terminated = True

    async def emit(self, event: ProtocolEvent) -> None:
        """
        Validate, encode and write one event.

        Raises:
            ProtocolError: If the event is out of order
            SinkClosedError: If the sink rejected the write; the stream is then unusable
        """
        if self._broken:
            raise SinkClosedError("Outbound stream already failed")

        event_type = str(event.get("type"))
        self._check_order(event_type)

        try:
            await self.sink.send(format_protocol_event(event).encode("utf-8"))
        except Exception as e:
            self._broken = True
            if isinstance(e, SinkClosedError):
                raise
            raise SinkClosedError(f"Outbound write failed: {e}") from e

        self._apply(event_type)
        self.events_sent += 1

    async def start(self) -> None:
        await self.emit(create_start_event(self.message_id))
        await self.emit(create_start_step_event())

    async def tool_input(self, tool_call_id: str, tool_name: str, tool_input: Any) -> None:
        await self.emit(create_tool_input_event(tool_call_id, tool_name, tool_input))

    async def tool_output(self, tool_call_id: str, output: Any) -> None:
        await self.emit(create_tool_output_event(tool_call_id, output))

    async def text_start(self) -> None:
        await self.emit(create_text_start_event(self.text_id))

    async def text_delta(self, delta: str) -> None:
        await self.emit(create_text_delta_event(self.text_id, delta))

    async def text_end(self) -> None:
        await self.emit(create_text_end_event(self.text_id))

    async def finish(self, finish_reason: str = "stop") -> None:
        """Close any open text block, then emit ``finish-step`` and ``finish``."""
        if self._text_open:
            await self.text_end()
        await self.emit(create_finish_step_event())
        await self.emit(create_finish_event(finish_reason))

    async def error(self, error_text: str) -> bool:
        """
        Emit a stream-level error if the sink is still writable.

        Returns:
            True if the error event was written
        """
        if not self.writable:
            return False
        try:
            await self.emit(create_error_event(error_text))
            return True
        except SinkClosedError:
            logger.debug("Could not deliver error event", message_id=self.message_id)
            return False

    async def close(self) -> None:
        """Close the sink. Errors closing a dead sink are ignored."""
        try:
            await self.sink.close()
        except Exception as e:
            logger.debug("Error closing outbound sink", error=str(e))
