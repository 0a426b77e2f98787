# ABOUTME: Reconstructs watched time from playback events and validates video completion.
# ABOUTME: Applies watched-ratio, pause-count, and playback-speed rules per video.

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence

from src.common.config import DEFAULT_RULES, CompletionRules
from src.common.errors import SubjectNotFoundError
from src.common.event_log import EventLogReader
from src.common.schemas import (
    LearningEvent,
    VideoFinish,
    VideoPause,
    VideoPlay,
    VideoSeek,
    VideoSpeedChanged,
    VideoTimeUpdate,
    VideoValidationResult,
    order_events,
)

logger = logging.getLogger(__name__)


def calculate_watched_seconds(events: Sequence[LearningEvent], total_duration: float) -> float:
    """
    Estimate watched seconds by tracking play segments.

    A single cursor marks where the current segment started. Play opens a
    segment, pause closes it, seek/time_update bank the elapsed span and move
    the cursor (opening a segment if none was open), and finish closes the
    segment and credits the rest of the video up to ``total_duration``.
    A segment still open after the last event is closed at that event's
    position. The result is clamped to ``[0, total_duration]``.
    """

    if not events:
        return 0.0

    watched = 0.0
    cursor: Optional[float] = None

    for event in events:
        action = event.action
        if isinstance(action, VideoPlay):
            cursor = action.current_time
        elif isinstance(action, VideoPause):
            if cursor is not None:
                watched += max(0.0, action.current_time - cursor)
            cursor = None
        elif isinstance(action, (VideoSeek, VideoTimeUpdate)):
            if cursor is not None:
                watched += max(0.0, action.current_time - cursor)
            cursor = action.current_time
        elif isinstance(action, VideoFinish):
            if cursor is not None:
                watched += max(0.0, action.current_time - cursor)
            cursor = None
            watched += total_duration - action.current_time
        elif isinstance(action, VideoSpeedChanged):
            continue
        else:
            raise TypeError(f"Unsupported video action {action!r}")

    if cursor is not None:
        last_position = events[-1].position
        if last_position is not None:
            watched += max(0.0, last_position - cursor)

    return float(min(max(watched, 0.0), total_duration))


def count_pauses(events: Sequence[LearningEvent]) -> int:
    return sum(1 for e in events if isinstance(e.action, VideoPause))


def calculate_max_speed(events: Sequence[LearningEvent]) -> float:
    max_speed = 1.0
    for event in events:
        action = event.action
        if isinstance(action, VideoSpeedChanged) and action.playback_speed is not None:
            max_speed = max(max_speed, action.playback_speed)
    return max_speed


class VideoCompletionValidator:
    """
    Validates video watching. All three rules must hold:

    - watched ratio >= ``video_min_watched_ratio``
    - pause count < ``video_max_pause_count``
    - max playback speed <= ``video_max_playback_speed``
    """

    def __init__(
        self,
        reader: EventLogReader,
        rules: CompletionRules = DEFAULT_RULES,
        max_workers: Optional[int] = None,
    ):
        self.reader = reader
        self.rules = rules
        self.max_workers = max_workers

    def _total_duration(self, video_id: str) -> float:
        metadata = self.reader.fetch_video_metadata(video_id)
        if metadata is None:
            raise SubjectNotFoundError(video_id)
        duration = metadata.total_duration_seconds
        if duration is None or duration <= 0:
            logger.info(
                "Video %s has no usable duration (%s); using %.0fs.",
                video_id,
                duration,
                self.rules.default_video_duration_seconds,
            )
            return float(self.rules.default_video_duration_seconds)
        return float(duration)

    def evaluate(self, events: Sequence[LearningEvent], total_duration: float) -> VideoValidationResult:
        """Apply the rules to an already-fetched, ordered history."""

        rules = self.rules
        watched = calculate_watched_seconds(events, total_duration)
        pauses = count_pauses(events)
        max_speed = calculate_max_speed(events)
        ratio = watched / total_duration if total_duration > 0 else 0.0

        meets_watch = ratio >= rules.video_min_watched_ratio
        meets_pause = pauses < rules.video_max_pause_count
        meets_speed = max_speed <= rules.video_max_playback_speed

        return VideoValidationResult(
            watched_seconds=watched,
            total_seconds=total_duration,
            pause_count=pauses,
            max_speed=max_speed,
            is_valid=meets_watch and meets_pause and meets_speed,
            watched_ratio=ratio,
            meets_watch_requirement=meets_watch,
            meets_pause_requirement=meets_pause,
            meets_speed_requirement=meets_speed,
        )

    def validate(self, user_id: str, video_id: str) -> VideoValidationResult:
        total_duration = self._total_duration(video_id)
        events = order_events(self.reader.fetch_events(user_id, video_id))
        return self.evaluate(events, total_duration)

    def validate_multiple(self, user_id: str, video_ids: Sequence[str]) -> Dict[str, VideoValidationResult]:
        """
        Validate several videos independently.

        Ids whose validation raises are logged and left out of the result.
        """

        unique_ids: List[str] = list(dict.fromkeys(video_ids))
        results: Dict[str, VideoValidationResult] = {}
        if not unique_ids:
            return results

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.validate, user_id, vid): vid for vid in unique_ids}
            for future in as_completed(futures):
                video_id = futures[future]
                try:
                    results[video_id] = future.result()
                except Exception as exc:
                    logger.warning("Error validating video %s for user %s: %s", video_id, user_id, exc)
        return results

    def validate_all(self, user_id: str, video_ids: Sequence[str]) -> bool:
        results = self.validate_multiple(user_id, video_ids)
        return all(vid in results and results[vid].is_valid for vid in video_ids)
