from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.schemas.enrollment import ProgressUpdate, ProgressResponse
from app.models.user import User
from app.auth.dependencies import get_current_student, user_from_token
from app.core.exceptions import MarketplaceError
from app.services.pricing_service import PriceResolver, normalize_course_id
from app.services.progress_service import ProgressService
from app.services.progress_sync import (
    EnrollmentStateStore,
    PlaybackPosition,
    PlaybackState,
    ProgressSyncEngine,
    make_database_writer,
)
from app.api.api_v1.common import http_error

logger = logging.getLogger(__name__)

router = APIRouter()


def _course_key(course_id: str) -> str:
    try:
        return normalize_course_id(course_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Course {course_id} not found"
        )


@router.get("/{course_id}", response_model=ProgressResponse)
async def get_progress(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    snapshot = ProgressService(db).get_progress(current_user.id, _course_key(course_id))
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You are not enrolled in this course"
        )
    return snapshot


@router.put("/{course_id}", response_model=ProgressResponse)
async def update_progress(
    course_id: str,
    progress_data: ProgressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    """Merge one progress report; stale or out-of-order reports never move progress back"""
    try:
        enrollment = ProgressService(db).apply_progress(
            current_user.id,
            _course_key(course_id),
            progress_data.progress,
            progress_data.watched_duration,
            progress_data.last_accessed
        )
    except MarketplaceError as e:
        raise http_error(e)
    return enrollment


def _position_of(message: dict):
    if "position" not in message or "duration" not in message:
        return None
    try:
        return PlaybackPosition(
            position=float(message["position"]),
            duration=float(message["duration"]),
            lecture_index=int(message.get("lecture_index") or 0)
        )
    except (TypeError, ValueError):
        return None


@router.websocket("/ws/{course_id}")
async def progress_socket(websocket: WebSocket, course_id: str, token: str = None, db: Session = Depends(get_db)):
    """Player session: the client sends play, pause, tick and stop events.

    Ticks carry ``position``, ``duration`` and optionally ``lecture_index``.
    The engine samples the latest tick on its own timer and writes on a
    slower one; pause and stop write straight away. Disconnecting counts as
    stop.
    """
    try:
        user = get_current_student(user_from_token(token or "", db))
        course_key = normalize_course_id(course_id)
        course = PriceResolver(db).get_course(course_key)
    except (HTTPException, MarketplaceError, ValueError):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    current = ProgressService(db).get_progress(user.id, course_key)
    if current is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    lecture_count = course.lecture_count or 1
    user_id = user.id
    # Writes go through their own sessions off the event loop
    db.close()

    latest = {"reading": None}
    engine = ProgressSyncEngine(
        course_key,
        position_source=lambda: latest["reading"],
        writer=make_database_writer(user_id),
        store=EnrollmentStateStore([current]),
        lecture_count=lecture_count
    )

    await websocket.accept()
    try:
        while engine.state != PlaybackState.STOPPED:
            message = await websocket.receive_json()
            event = message.get("type")
            reading = _position_of(message)
            if reading is not None:
                latest["reading"] = reading

            if event == "play":
                await engine.play()
            elif event == "pause":
                if reading is not None:
                    engine.sample()
                await engine.pause()
                await websocket.send_json(_state_message("paused", engine))
            elif event == "stop":
                if reading is not None:
                    engine.sample()
                saved = await engine.stop()
                await websocket.send_json(_state_message("stopped", engine, saved))
            elif event != "tick":
                await websocket.send_json({"type": "error", "detail": f"Unknown event: {event}"})
    except WebSocketDisconnect:
        logger.debug(f"Player disconnected from course {course_key}")
    finally:
        if engine.state != PlaybackState.STOPPED and latest["reading"] is not None:
            engine.sample()
        await engine.stop()

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()


def _state_message(kind: str, engine: ProgressSyncEngine, saved: bool = None) -> dict:
    snapshot = engine.store.get(engine.course_id)
    return {
        "type": kind,
        "saved": (not engine.dirty) if saved is None else saved,
        "progress": snapshot.progress if snapshot else 0,
        "watched_duration": snapshot.watched_duration if snapshot else 0.0,
        "status": snapshot.status if snapshot else None
    }
