"""
Dexter Stream Bridge
====================

Streams multi-turn conversations with a tool-calling research agent to web
clients as incremental Server-Sent Events, whether the agent runs in-process
or in a hosted deployment.

This package provides:
- FastAPI endpoint streaming chat turns as protocol events
- Tool-call correlation and hosted-run SSE passthrough
- Provider error classification
- Per-session conversation history in SQLite or PostgreSQL
"""

__version__ = "1.0.0"
__author__ = "Dexter Team"
