"""Playback progress syncing.

The player reports its position about once a second. ``ProgressSyncEngine``
keeps the local view current on every sample but only writes to storage on a
separate, slower cadence, and always writes the final state when playback
stops. ``EnrollmentStateStore`` is the session-scoped view those samples land
in.
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import PersistenceWriteFailed
from app.services.pricing_service import normalize_course_id
from app.services.progress_service import (
    ProgressService,
    ProgressSnapshot,
    clamp_progress,
    merge_progress,
    overall_progress,
    snapshot_of,
    status_for,
)

logger = logging.getLogger(__name__)

Listener = Callable[[ProgressSnapshot], None]
Writer = Callable[[ProgressSnapshot], Awaitable[Optional[ProgressSnapshot]]]


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class PlaybackPosition:
    position: float
    duration: float
    lecture_index: int = 0


class EnrollmentStateStore:
    """Progress view for one user session.

    Confirmed state comes from storage; optimistic state is what the player
    has shown locally and not yet had confirmed. Readers see the optimistic
    value when there is one.

    Rollback policy: ``rollback`` discards the optimistic value for a course
    (used when an enrollment write is rejected). Failed progress writes are
    not rolled back; the local value stays and the next write carries it.
    """

    def __init__(self, initial: Iterable[ProgressSnapshot] = ()):
        self._confirmed: Dict[str, ProgressSnapshot] = {}
        self._optimistic: Dict[str, ProgressSnapshot] = {}
        self._listeners: List[Listener] = []
        for snapshot in initial:
            self._confirmed[normalize_course_id(snapshot.course_id)] = snapshot

    def get(self, course_id) -> Optional[ProgressSnapshot]:
        key = normalize_course_id(course_id)
        return self._optimistic.get(key) or self._confirmed.get(key)

    def confirmed(self, course_id) -> Optional[ProgressSnapshot]:
        return self._confirmed.get(normalize_course_id(course_id))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: ProgressSnapshot):
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Progress listener failed: {e}")

    def mutate(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        """Merge state known to be stored into the confirmed view"""
        key = normalize_course_id(snapshot.course_id)
        merged = merge_progress(self._confirmed.get(key), replace(snapshot, course_id=key))
        self._confirmed[key] = merged
        optimistic = self._optimistic.get(key)
        if optimistic is not None and merged.progress >= optimistic.progress \
                and merged.watched_duration >= optimistic.watched_duration:
            del self._optimistic[key]
        visible = self.get(key)
        self._notify(visible)
        return visible

    def apply_optimistic(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        key = normalize_course_id(snapshot.course_id)
        merged = merge_progress(self.get(key), replace(snapshot, course_id=key))
        self._optimistic[key] = merged
        self._notify(merged)
        return merged

    def confirm(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        return self.mutate(snapshot)

    def rollback(self, course_id) -> Optional[ProgressSnapshot]:
        key = normalize_course_id(course_id)
        self._optimistic.pop(key, None)
        visible = self.get(key)
        if visible is not None:
            self._notify(visible)
        return visible


class ProgressSyncEngine:
    """Samples playback every ``sample_interval`` and persists every ``flush_interval``.

    The two timers are independent asyncio tasks. ``stop()`` cancels both and
    then flushes, so the last sampled position is never dropped.
    """

    def __init__(
        self,
        course_id,
        position_source: Callable[[], Optional[PlaybackPosition]],
        writer: Writer,
        store: Optional[EnrollmentStateStore] = None,
        lecture_count: int = 1,
        sample_interval: Optional[float] = None,
        flush_interval: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.course_id = normalize_course_id(course_id)
        self.position_source = position_source
        self.writer = writer
        self.store = store or EnrollmentStateStore()
        self.lecture_count = max(int(lecture_count or 1), 1)
        self.sample_interval = sample_interval or settings.PROGRESS_SAMPLE_INTERVAL_SECONDS
        self.flush_interval = flush_interval or settings.PROGRESS_FLUSH_INTERVAL_SECONDS
        self.clock = clock

        self.state = PlaybackState.IDLE
        self.latest: Optional[ProgressSnapshot] = None
        self.last_written: Optional[ProgressSnapshot] = None
        self.write_count = 0
        self.failed_writes = 0
        self.last_error: Optional[Exception] = None

        self._dirty = False
        self._sample_task: Optional[asyncio.Task] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def timers_running(self) -> bool:
        return any(task is not None and not task.done() for task in (self._sample_task, self._flush_task))

    async def play(self):
        if self.state == PlaybackState.STOPPED:
            raise RuntimeError("Playback session already stopped")
        if self.state == PlaybackState.PLAYING:
            return
        self.state = PlaybackState.PLAYING
        self._sample_task = asyncio.create_task(self._run_sampler())
        self._flush_task = asyncio.create_task(self._run_flusher())
        logger.debug(f"Progress sync started for course {self.course_id}")

    async def pause(self):
        if self.state != PlaybackState.PLAYING:
            return
        self.state = PlaybackState.PAUSED
        await self._cancel_timers()
        await self.flush()

    async def stop(self) -> bool:
        """Cancel both timers and persist the latest state"""
        if self.state == PlaybackState.STOPPED:
            return True
        self.state = PlaybackState.STOPPED
        await self._cancel_timers()
        return await self.flush()

    def sample(self) -> Optional[ProgressSnapshot]:
        """Read the player position and update the local view immediately"""
        reading = self.position_source()
        if reading is None or not reading.duration or reading.duration <= 0:
            return None

        percent = overall_progress(reading.lecture_index, self.lecture_count, reading.position, reading.duration)
        progress = clamp_progress(percent)
        snapshot = ProgressSnapshot(
            course_id=self.course_id,
            progress=progress,
            watched_duration=max(float(reading.position), 0.0),
            last_accessed=self.clock(),
            status=status_for(progress)
        )
        self.latest = snapshot
        self.store.apply_optimistic(snapshot)

        if self.last_written is None or snapshot.progress != self.last_written.progress \
                or snapshot.watched_duration != self.last_written.watched_duration:
            self._dirty = True
        return snapshot

    async def flush(self, force: bool = False) -> bool:
        """Write the latest snapshot now, skipping the interval. False if the write failed."""
        async with self._write_lock:
            snapshot = self.latest
            if snapshot is None or not (self._dirty or force):
                return True
            try:
                confirmed = await self.writer(snapshot)
            except Exception as e:
                # Left dirty: the next tick retries with fresher data
                self.failed_writes += 1
                self.last_error = e
                logger.error(f"Progress write failed for course {self.course_id}: {e}")
                return False

            self.write_count += 1
            self.last_written = snapshot
            self.last_error = None
            if self.latest is snapshot:
                self._dirty = False
            self.store.confirm(confirmed or snapshot)
            return True

    async def _run_sampler(self):
        while True:
            try:
                self.sample()
            except Exception as e:
                logger.warning(f"Could not sample playback for course {self.course_id}: {e}")
            await asyncio.sleep(self.sample_interval)

    async def _run_flusher(self):
        while True:
            await asyncio.sleep(self.flush_interval)
            await self.flush()

    async def _cancel_timers(self):
        for task in (self._sample_task, self._flush_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._sample_task = None
        self._flush_task = None


def make_database_writer(user_id, session_factory=None) -> Writer:
    """Writer that merges snapshots into the enrollment table off the event loop"""
    if session_factory is None:
        from app.database import SessionLocal
        session_factory = SessionLocal

    def _apply(snapshot: ProgressSnapshot) -> ProgressSnapshot:
        db = session_factory()
        try:
            enrollment = ProgressService(db).apply_progress(
                user_id,
                snapshot.course_id,
                snapshot.progress,
                snapshot.watched_duration,
                snapshot.last_accessed
            )
            return snapshot_of(enrollment)
        finally:
            db.close()

    async def write(snapshot: ProgressSnapshot) -> ProgressSnapshot:
        try:
            return await run_in_threadpool(_apply, snapshot)
        except PersistenceWriteFailed:
            raise
        except Exception as e:
            raise PersistenceWriteFailed(str(e)) from e

    return write
