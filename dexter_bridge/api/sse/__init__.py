"""
Server-Sent Events (SSE) Streaming
==================================

Streams chat turns to web clients as incremental protocol events.

Components:
- Events: Protocol event types and SSE wire formatting
- Emitter: Ordered event writer over an outbound sink
- Correlator: Stable ids for in-flight tool calls
- Parser: Incremental decoder for hosted-run SSE streams
- Transports: Local agent loop or hosted-run passthrough
- Bridge: Orchestrates one turn end to end
"""

from .events import ProtocolEventType, format_protocol_event
from .emitter import ProtocolEmitter, ProtocolError
from .correlator import ToolCallCorrelator
from .parser import SSELineParser, SSEMessage, aiter_sse_messages
from .sink import QueueSink, ListSink, SinkClosedError
from .transports import LocalTransport, RemoteTransport, RemoteStreamError, select_transport
from .bridge import StreamingBridge, BridgeState, get_streaming_bridge

__all__ = [
    "ProtocolEventType",
    "format_protocol_event",
    "ProtocolEmitter",
    "ProtocolError",
    "ToolCallCorrelator",
    "SSELineParser",
    "SSEMessage",
    "aiter_sse_messages",
    "QueueSink",
    "ListSink",
    "SinkClosedError",
    "LocalTransport",
    "RemoteTransport",
    "RemoteStreamError",
    "select_transport",
    "StreamingBridge",
    "BridgeState",
    "get_streaming_bridge",
]
