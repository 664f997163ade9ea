"""
Chat Routes
===========

FastAPI routes for streamed chat turns and non-streaming hosted runs.
"""

from typing import Annotated, Any, AsyncGenerator, Dict, Set
import asyncio
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from dexter_bridge.config.logging import get_logger
from dexter_bridge.api.auth import validate_api_key
from dexter_bridge.api.sse.bridge import get_streaming_bridge
from dexter_bridge.api.sse.sink import QueueSink
from dexter_bridge.core.agent import AgentConfigError
from dexter_bridge.core.hosted import run_hosted_turn
from dexter_bridge.core.storage import StorageError
from dexter_bridge.models.schemas import ChatRequest, HostedRunRequest, HostedRunResponse

logger = get_logger(__name__)

# Create router
router = APIRouter(
    prefix="/api",
    tags=["Chat"],
    responses={400: {"description": "Missing user query"}},
)

# Running turns, referenced until done so they are not garbage collected
_turn_tasks: Set["asyncio.Task[Any]"] = set()


async def _parse_chat_request(request: Request) -> ChatRequest:
    """Read the body leniently: anything unparseable counts as an empty request."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return ChatRequest.model_validate(body)
    except ValidationError as e:
        logger.debug("Ignoring malformed chat request body", error=str(e))
        return ChatRequest()


@router.post("/chat")
async def chat(
    request: Request, api_key: Annotated[str, Depends(validate_api_key)]
) -> StreamingResponse:
    """
    Stream one chat turn.

    The query is the latest user message. The response is an SSE stream of
    protocol events; failures after the stream started arrive as an ``error`` event.

    Raises:
        HTTPException: 400 if there is no user query
    """
    chat_request = await _parse_chat_request(request)
    query = chat_request.user_query()
    if not query:
        raise HTTPException(status_code=400, detail="Missing user query.")

    thread = chat_request.memory.thread if chat_request.memory else None
    session_id = thread or f"web-{uuid.uuid4()}"

    bridge = get_streaming_bridge()
    sink = QueueSink()
    task = asyncio.create_task(bridge.stream_turn(query, session_id, sink))
    _turn_tasks.add(task)
    task.add_done_callback(_turn_tasks.discard)

    logger.info("Chat turn accepted", session_id=session_id, query_length=len(query))

    async def event_generator() -> AsyncGenerator[bytes, None]:
        """Relay encoded protocol events to the client."""
        try:
            async for chunk in sink.stream():
                yield chunk
        finally:
            # Client went away: stop driving the agent or hosted run
            if sink.disconnected and not task.done():
                task.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "X-Session-ID": session_id,
        },
    )


@router.post("/runs/wait", response_model=HostedRunResponse)
async def run_wait(
    run_request: HostedRunRequest, api_key: Annotated[str, Depends(validate_api_key)]
) -> Dict[str, Any]:
    """
    Answer one turn without streaming, as a hosted deployment does.

    Returns:
        Final answer and the new assistant message
    """
    try:
        return await run_hosted_turn(run_request.input, run_request.configurable)
    except AgentConfigError as e:
        logger.error("Hosted run has no agent", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))
    except StorageError as e:
        logger.error("Hosted run could not access history", error=str(e))
        raise HTTPException(status_code=503, detail="Chat history is unavailable")
