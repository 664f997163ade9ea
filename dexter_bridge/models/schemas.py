"""
Pydantic Models and Schemas
===========================

Core data models for chat requests, stored turns and API responses.
"""

from typing import Optional, List, Dict, Any, Literal
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


# Conversation Models
class Turn(BaseModel):
    """One query/answer exchange within a session."""

    query: str = Field(..., description="User query text")
    answer: str = Field(default="", description="Final agent answer, empty until complete")
    summary: Optional[str] = Field(None, description="Compressed form of the turn")


# Chat Request Models
class MessagePart(BaseModel):
    """One part of a multi-part client message."""

    type: Optional[str] = Field(None, description="Part type, e.g. 'text'")
    text: Optional[str] = Field(None, description="Text content for text parts")

    model_config = ConfigDict(extra="allow")


class IncomingMessage(BaseModel):
    """A prior message sent by the chat client."""

    role: Optional[str] = Field(None, description="Message role: user, assistant, system")
    content: Optional[Any] = Field(None, description="Plain content")
    parts: Optional[List[Any]] = Field(None, description="Multi-part content")

    model_config = ConfigDict(extra="allow")

    def text(self) -> str:
        """Plain string content, else the concatenated text parts."""
        if isinstance(self.content, str):
            return self.content
        if self.parts is not None:
            return "".join(part.text or "" for part in self._text_parts())
        return ""

    def _text_parts(self) -> List[MessagePart]:
        """Text-typed parts; parts of any other shape are skipped."""
        parts = []
        for raw in self.parts or []:
            if not isinstance(raw, dict) or raw.get("type") != "text":
                continue
            if not isinstance(raw.get("text"), (str, type(None))):
                continue
            parts.append(MessagePart.model_validate(raw))
        return parts


class ChatMemory(BaseModel):
    """Conversation continuity options."""

    thread: Optional[str] = Field(None, description="Session continuity key")
    resource: Optional[str] = Field(None, description="Resource (user) identifier")


class ChatRequest(BaseModel):
    """Request body for one streamed chat turn."""

    messages: List[IncomingMessage] = Field(default_factory=list, description="Prior messages")
    memory: Optional[ChatMemory] = Field(None, description="Continuity options")

    model_config = ConfigDict(extra="allow")

    def user_query(self) -> str:
        """Text of the most recent user message, trimmed. Empty if there is none."""
        for message in reversed(self.messages):
            if message.role == "user":
                return message.text().strip()
        return ""


class HostedRunRequest(BaseModel):
    """Request body for a non-streaming hosted run."""

    input: Dict[str, Any] = Field(default_factory=dict, description="Graph state")
    config: Optional[Dict[str, Any]] = Field(None, description="Run configuration")

    @property
    def configurable(self) -> Dict[str, Any]:
        configurable = (self.config or {}).get("configurable")
        return configurable if isinstance(configurable, dict) else {}


class HostedRunResponse(BaseModel):
    """Result of a non-streaming hosted run."""

    result: str = Field(..., description="Final answer")
    messages: List[Dict[str, Any]] = Field(default_factory=list, description="New messages")


# Health Check Models
class HealthStatus(BaseModel):
    """Health check status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp"
    )
    version: str = Field(..., description="Application version")
    database: bool = Field(..., description="Database connectivity")
    transport: Literal["local", "remote"] = Field(..., description="Active turn transport")


# Error Models
class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
