# ABOUTME: Defines canonical data structures shared by the completion validators.
# ABOUTME: Centralizes learning events, subject metadata, results, and activity records.

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)


# PDF action variants


@dataclass(frozen=True)
class PdfOpen:
    page_num: Optional[int] = None


@dataclass(frozen=True)
class PdfPageTurn:
    page_num: int


@dataclass(frozen=True)
class PdfFinish:
    page_num: Optional[int] = None


@dataclass(frozen=True)
class PdfClose:
    page_num: Optional[int] = None


# Video action variants


@dataclass(frozen=True)
class VideoPlay:
    current_time: float


@dataclass(frozen=True)
class VideoPause:
    current_time: float


@dataclass(frozen=True)
class VideoSeek:
    current_time: float


@dataclass(frozen=True)
class VideoTimeUpdate:
    current_time: float


@dataclass(frozen=True)
class VideoSpeedChanged:
    playback_speed: Optional[float] = None
    current_time: Optional[float] = None


@dataclass(frozen=True)
class VideoFinish:
    current_time: float


PdfAction = Union[PdfOpen, PdfPageTurn, PdfFinish, PdfClose]
VideoAction = Union[VideoPlay, VideoPause, VideoSeek, VideoTimeUpdate, VideoSpeedChanged, VideoFinish]
LearningAction = Union[PdfAction, VideoAction]

PDF_ACTION_TYPES = (PdfOpen, PdfPageTurn, PdfFinish, PdfClose)
VIDEO_ACTION_TYPES = (VideoPlay, VideoPause, VideoSeek, VideoTimeUpdate, VideoSpeedChanged, VideoFinish)


@dataclass(frozen=True)
class EventAuxiliary:
    """Optional client signals captured alongside an event."""

    playback_speed: Optional[float] = None
    is_hidden: Optional[bool] = None
    is_muted: Optional[bool] = None
    evidence: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LearningEvent:
    """One user's interaction with one content item at one instant."""

    user_id: str
    file_id: str
    timestamp: datetime
    action: LearningAction
    auxiliary: Optional[EventAuxiliary] = None

    @property
    def position(self) -> Optional[float]:
        """Page number for PDF actions, playback second for video actions."""
        action = self.action
        if isinstance(action, PDF_ACTION_TYPES):
            return action.page_num
        if isinstance(action, VIDEO_ACTION_TYPES):
            return action.current_time
        raise TypeError(f"Unsupported learning action {action!r}")

    @property
    def is_pdf(self) -> bool:
        return isinstance(self.action, PDF_ACTION_TYPES)


def order_events(events: Sequence[LearningEvent]) -> List[LearningEvent]:
    """
    Return events in non-decreasing timestamp order.

    Callers are expected to supply ordered histories. The sort is stable, so
    already-ordered input (including ties) comes back unchanged.
    """

    ordered = list(events)
    for prev, curr in zip(ordered, ordered[1:]):
        if curr.timestamp < prev.timestamp:
            logger.warning(
                "Events for user=%s file=%s arrived out of timestamp order; sorting.",
                curr.user_id,
                curr.file_id,
            )
            return sorted(ordered, key=lambda e: e.timestamp)
    return ordered


@dataclass(frozen=True)
class PdfMetadata:
    file_id: str
    total_pages: Optional[int] = None


@dataclass(frozen=True)
class VideoMetadata:
    file_id: str
    total_duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class PdfValidationResult:
    is_opened: bool
    duration_minutes: int
    reached_last_page: bool
    is_valid: bool

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VideoValidationResult:
    watched_seconds: float
    total_seconds: float
    pause_count: int
    max_speed: float
    is_valid: bool
    watched_ratio: float
    meets_watch_requirement: bool
    meets_pause_requirement: bool
    meets_speed_requirement: bool

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PdfLearningProgress:
    """Detailed reading progress for debugging and display."""

    events: List[LearningEvent]
    total_pages: int
    max_page_viewed: int
    duration_minutes: int
    first_access: Optional[datetime]
    last_access: Optional[datetime]


class ActivityType(str, Enum):
    TAB_HIDDEN = "tab_hidden"
    VIDEO_MUTED = "video_muted"
    VIDEO_FAST_FORWARD = "video_fast_forward"
    TIME_GAP_ANOMALY = "time_gap_anomaly"


@dataclass(frozen=True)
class DetectionContext:
    """Snapshot of one incoming event's engagement signals."""

    user_id: str
    file_id: Optional[str] = None
    is_hidden: Optional[bool] = None
    is_muted: Optional[bool] = None
    playback_speed: Optional[float] = None
    time_gap_seconds: Optional[float] = None
    timestamp: Optional[datetime] = None
    evidence: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SuspiciousActivity:
    id: str
    user_id: str
    file_id: Optional[str]
    activity_type: ActivityType
    reason: str
    evidence: Dict[str, Any]
    created_at: datetime

    def as_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_id": self.file_id,
            "activity_type": self.activity_type.value,
            "reason": self.reason,
            "evidence": dict(self.evidence),
            "created_at": self.created_at,
        }
