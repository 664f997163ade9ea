"""
Tool-Call Correlator
====================

Maps tool names to pending call ids for one outbound stream.

Calls are resolved oldest-first per tool name. When two calls to the same tool
overlap and finish out of start order, their outputs are attributed to the
wrong ids; agents report tool events by name only, so this is accepted.
"""

from typing import List, Tuple


class ToolCallCorrelator:
    """FIFO table of pending tool calls."""

    def __init__(self, prefix: str = "tool") -> None:
        self.prefix = prefix
        self._counter = 0
        self._pending: List[Tuple[str, str]] = []

    def _mint(self) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter}"

    def assign(self, tool_name: str) -> str:
        """Mint an id for a starting call and record it as pending."""
        call_id = self._mint()
        self._pending.append((tool_name, call_id))
        return call_id

    def resolve(self, tool_name: str) -> str:
        """
        Pop the oldest pending id for a tool.

        A resolve without a matching assign returns a fresh id that is not recorded.
        """
        for index, (name, call_id) in enumerate(self._pending):
            if name == tool_name:
                del self._pending[index]
                return call_id
        return self._mint()

    @property
    def pending_count(self) -> int:
        return len(self._pending)
