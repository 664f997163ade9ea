"""
Protocol Events
===============

Client-facing incremental update events and their SSE wire format.
Each event is one ``data: <JSON>\\n\\n`` record carrying exactly the listed fields.
"""

from typing import Any, Dict
from enum import Enum
import json


class ProtocolEventType(str, Enum):
    """Outbound protocol event types, in the order they may appear in a turn."""

    START = "start"
    START_STEP = "start-step"
    TOOL_INPUT_AVAILABLE = "tool-input-available"
    TOOL_OUTPUT_AVAILABLE = "tool-output-available"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_END = "text-end"
    FINISH_STEP = "finish-step"
    FINISH = "finish"
    ERROR = "error"


ProtocolEvent = Dict[str, Any]


def format_protocol_event(event: ProtocolEvent) -> str:
    """
    Format an event for the SSE protocol.

    Args:
        event: Event dictionary with a ``type`` key

    Returns:
        Formatted SSE record
    """
    data_json = json.dumps(event, default=str, ensure_ascii=False, separators=(",", ":"))
    # SSE protocol requires double newline at end
    return f"data: {data_json}\n\n"


def create_start_event(message_id: str) -> ProtocolEvent:
    return {"type": ProtocolEventType.START.value, "messageId": message_id}


def create_start_step_event() -> ProtocolEvent:
    return {"type": ProtocolEventType.START_STEP.value}


def create_tool_input_event(tool_call_id: str, tool_name: str, tool_input: Any) -> ProtocolEvent:
    return {
        "type": ProtocolEventType.TOOL_INPUT_AVAILABLE.value,
        "toolCallId": tool_call_id,
        "toolName": tool_name,
        "input": tool_input,
    }


def create_tool_output_event(tool_call_id: str, output: Any) -> ProtocolEvent:
    return {
        "type": ProtocolEventType.TOOL_OUTPUT_AVAILABLE.value,
        "toolCallId": tool_call_id,
        "output": output,
    }


def create_text_start_event(text_id: str) -> ProtocolEvent:
    return {"type": ProtocolEventType.TEXT_START.value, "id": text_id}


def create_text_delta_event(text_id: str, delta: str) -> ProtocolEvent:
    return {"type": ProtocolEventType.TEXT_DELTA.value, "id": text_id, "delta": delta}


def create_text_end_event(text_id: str) -> ProtocolEvent:
    return {"type": ProtocolEventType.TEXT_END.value, "id": text_id}


def create_finish_step_event() -> ProtocolEvent:
    return {"type": ProtocolEventType.FINISH_STEP.value}


def create_finish_event(finish_reason: str = "stop") -> ProtocolEvent:
    return {"type": ProtocolEventType.FINISH.value, "finishReason": finish_reason}


def create_error_event(error_text: str) -> ProtocolEvent:
    return {"type": ProtocolEventType.ERROR.value, "errorText": error_text}
