from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional
import logging
import math

from app.core.clock import ensure_aware, utcnow
from app.core.exceptions import NotEnrolled, PersistenceWriteFailed
from app.models.enrollment import EnrolledCourse, EnrollmentStatus
from app.services.pricing_service import normalize_course_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    course_id: str
    progress: int
    watched_duration: float
    last_accessed: datetime
    status: str = EnrollmentStatus.IN_PROGRESS


def clamp_progress(value) -> int:
    if value is None:
        return 0
    value = float(value)
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return 100 if value > 0 else 0
    # Floor, so a course only counts as complete once it is actually finished
    return int(min(max(math.floor(value), 0), 100))


def status_for(progress: int, previous_status: Optional[str] = None) -> str:
    if progress >= 100 or previous_status == EnrollmentStatus.COMPLETED:
        return EnrollmentStatus.COMPLETED
    return EnrollmentStatus.IN_PROGRESS


def overall_progress(lecture_index: int, lecture_count: int, position: float, duration: float) -> float:
    """Course-wide percentage for a playlist, each lecture being an equal share"""
    lecture_count = max(int(lecture_count or 1), 1)
    lecture_index = min(max(int(lecture_index or 0), 0), lecture_count - 1)
    share = 100.0 / lecture_count
    fraction = 0.0
    if duration and duration > 0:
        fraction = min(max(float(position or 0) / float(duration), 0.0), 1.0)
    return min(lecture_index * share + fraction * share, 100.0)


def merge_progress(current: Optional[ProgressSnapshot], incoming: ProgressSnapshot) -> ProgressSnapshot:
    """Combine a stored state with an update that may be stale or out of order.

    Progress and watched time only ever grow; the newest access time wins;
    completion is sticky.
    """
    incoming = replace(
        incoming,
        progress=clamp_progress(incoming.progress),
        watched_duration=max(float(incoming.watched_duration or 0.0), 0.0),
        last_accessed=ensure_aware(incoming.last_accessed)
    )
    if current is None:
        return replace(incoming, status=status_for(incoming.progress))

    progress = max(current.progress, incoming.progress)
    last_accessed = ensure_aware(current.last_accessed)
    if last_accessed is None or (incoming.last_accessed and incoming.last_accessed > last_accessed):
        last_accessed = incoming.last_accessed
    return ProgressSnapshot(
        course_id=current.course_id,
        progress=progress,
        watched_duration=max(float(current.watched_duration or 0.0), incoming.watched_duration),
        last_accessed=last_accessed,
        status=status_for(progress, current.status)
    )


def snapshot_of(enrollment: EnrolledCourse) -> ProgressSnapshot:
    return ProgressSnapshot(
        course_id=enrollment.course_id,
        progress=enrollment.progress or 0,
        watched_duration=enrollment.watched_duration or 0.0,
        last_accessed=ensure_aware(enrollment.last_accessed),
        status=enrollment.status or EnrollmentStatus.IN_PROGRESS
    )


class ProgressService:
    def __init__(self, db: Session):
        self.db = db

    def apply_progress(self, user_id, course_id, progress, watched_duration: float = 0.0,
                       accessed_at: Optional[datetime] = None) -> EnrolledCourse:
        """Merge a progress update into the stored enrollment"""
        course_id = normalize_course_id(course_id)
        try:
            # Row lock keeps read-merge-write atomic on PostgreSQL
            enrollment = self.db.query(EnrolledCourse).filter(
                EnrolledCourse.user_id == user_id,
                EnrolledCourse.course_id == course_id
            ).with_for_update().first()
            if enrollment is None:
                self.db.rollback()
                raise NotEnrolled(course_id)

            merged = merge_progress(
                snapshot_of(enrollment),
                ProgressSnapshot(
                    course_id=course_id,
                    progress=progress,
                    watched_duration=watched_duration,
                    last_accessed=accessed_at or utcnow()
                )
            )
            enrollment.progress = merged.progress
            enrollment.watched_duration = merged.watched_duration
            enrollment.last_accessed = merged.last_accessed
            enrollment.status = merged.status
            self.db.commit()
            self.db.refresh(enrollment)
        except SQLAlchemyError as e:
            logger.error(f"Error saving progress for user {user_id}, course {course_id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed("Could not save progress") from e

        return enrollment

    def get_progress(self, user_id, course_id) -> Optional[ProgressSnapshot]:
        enrollment = self.db.query(EnrolledCourse).filter(
            EnrolledCourse.user_id == user_id,
            EnrolledCourse.course_id == normalize_course_id(course_id)
        ).first()
        return snapshot_of(enrollment) if enrollment else None
