"""Session API endpoints."""

import asyncio
import logging
from functools import lru_cache
from json import JSONDecodeError

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from rep_engine.errors import ConfigurationError
from rep_engine.schemas.frame import FrameMessage, PreviewRequest, ReadinessResponse
from rep_engine.schemas.session import (
    ErrorMessage,
    OperationResponse,
    SessionStartRequest,
    SessionStatusResponse,
    event_message,
)
from rep_engine.session.engine import OperationResult, RepEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_engine() -> RepEngine:
    """Process-wide engine instance."""
    return RepEngine()


def _respond(engine: RepEngine, result: OperationResult) -> OperationResponse:
    response = OperationResponse.from_result(result, engine.status().countdown_remaining)
    if not result.accepted:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.reason)
    return response


@router.post("/start", response_model=OperationResponse)
async def start_session(request: SessionStartRequest, engine: RepEngine = Depends(get_engine)):
    """Start a session and enter positioning."""
    try:
        result = engine.start(request.exercise_type, request.target, request.config)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _respond(engine, result)


@router.post("/skip", response_model=OperationResponse)
async def skip_session(engine: RepEngine = Depends(get_engine)):
    """Complete the session now, keeping current progress."""
    return _respond(engine, engine.skip())


@router.post("/reset", response_model=OperationResponse)
async def reset_session(engine: RepEngine = Depends(get_engine)):
    """Discard the session and return to idle."""
    return _respond(engine, engine.reset())


@router.post("/manual-tick", response_model=OperationResponse)
async def manual_tick(engine: RepEngine = Depends(get_engine)):
    """Add one rep (cyclic) or one second (hold)."""
    return _respond(engine, engine.add_manual_tick())


@router.get("", response_model=SessionStatusResponse)
async def get_session(engine: RepEngine = Depends(get_engine)):
    """Current session state and progress."""
    return SessionStatusResponse.from_status(engine.status())


@router.post("/preview", response_model=ReadinessResponse)
async def preview(request: PreviewRequest, engine: RepEngine = Depends(get_engine)):
    """Readiness hint for an exercise before starting."""
    try:
        readiness = engine.preview(request.exercise_type, request.frame.to_frame())
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return ReadinessResponse.from_readiness(readiness)


@router.websocket("/stream")
async def stream(websocket: WebSocket, engine: RepEngine = Depends(get_engine)):
    """
    Bidirectional session stream.

    Client -> server: frame messages ({"timestamp": ..., "keypoints": {...}})
    Server -> client: pose, state_changed, progress and completed messages

    Engine events may be published from timer threads, so they are handed
    to the event loop through call_soon_threadsafe. Malformed messages are
    answered with an error message and the stream stays open.
    """
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def enqueue(event):
        payload = event_message(event).model_dump(mode="json")
        loop.call_soon_threadsafe(queue.put_nowait, payload)

    unsubscribers = [
        engine.pose_updates.subscribe(enqueue),
        engine.session_events.subscribe(enqueue),
    ]

    async def pump():
        while True:
            payload = await queue.get()
            await websocket.send_json(payload)

    sender = asyncio.create_task(pump())
    try:
        while True:
            try:
                data = await websocket.receive_json()
                frame = FrameMessage.model_validate(data).to_frame()
            except (JSONDecodeError, ValidationError) as e:
                logger.debug(f"Invalid frame message: {e}")
                await queue.put(ErrorMessage(detail=str(e)).model_dump(mode="json"))
                continue
            engine.feed_frame(frame)
    except WebSocketDisconnect:
        logger.info("Stream client disconnected")
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        sender.cancel()
        # Surface send failures, e.g. writing after the client went away
        for result in await asyncio.gather(sender, return_exceptions=True):
            if isinstance(result, Exception):
                logger.warning(f"Stream sender stopped: {result!r}")
