# ABOUTME: Flags engagement signals that suggest simulated or bypassed learning.
# ABOUTME: Advisory only; detections never change a completion verdict.

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from src.common.config import DEFAULT_RULES, CompletionRules
from src.common.schemas import (
    ActivityType,
    DetectionContext,
    LearningEvent,
    SuspiciousActivity,
    VideoSpeedChanged,
)

REPORT_COLUMNS = ["id", "user_id", "file_id", "activity_type", "reason", "evidence", "created_at"]

_ACTIVITY_VALUES = {t.value for t in ActivityType}


def _activity(
    context: DetectionContext,
    timestamp: datetime,
    activity_type: ActivityType,
    reason: str,
    extra: Optional[Dict[str, Any]] = None,
) -> SuspiciousActivity:
    evidence = dict(context.evidence)
    evidence.update(extra or {})
    evidence["timestamp"] = timestamp.isoformat()
    return SuspiciousActivity(
        id=uuid.uuid4().hex,
        user_id=context.user_id,
        file_id=context.file_id or None,
        activity_type=activity_type,
        reason=reason,
        evidence=evidence,
        created_at=timestamp,
    )


def detect_suspicious_activity(
    context: DetectionContext, rules: CompletionRules = DEFAULT_RULES
) -> List[SuspiciousActivity]:
    """Evaluate every rule against one context; all matching rules fire."""

    timestamp = context.timestamp or datetime.now(timezone.utc)
    activities: List[SuspiciousActivity] = []

    if context.is_hidden is True:
        activities.append(
            _activity(context, timestamp, ActivityType.TAB_HIDDEN, "Document was hidden while learning")
        )

    if context.is_muted is True:
        activities.append(
            _activity(context, timestamp, ActivityType.VIDEO_MUTED, "Video was muted during playback")
        )

    speed_limit = rules.playback_speed_threshold
    if context.playback_speed is not None and context.playback_speed > speed_limit:
        activities.append(
            _activity(
                context,
                timestamp,
                ActivityType.VIDEO_FAST_FORWARD,
                f"Playback speed ({context.playback_speed:g}x) exceeds threshold ({speed_limit:g}x)",
                {"playback_speed": context.playback_speed, "threshold": speed_limit},
            )
        )

    gap_limit = rules.time_gap_threshold_seconds
    if context.time_gap_seconds is not None and context.time_gap_seconds > gap_limit:
        activities.append(
            _activity(
                context,
                timestamp,
                ActivityType.TIME_GAP_ANOMALY,
                f"Time gap ({context.time_gap_seconds:g}s) exceeds threshold ({gap_limit:g}s)",
                {"time_gap_seconds": context.time_gap_seconds, "threshold": gap_limit},
            )
        )

    return activities


def is_suspicious_activity_type(activity_type: str) -> bool:
    return activity_type in _ACTIVITY_VALUES


def context_from_event(event: LearningEvent, previous: Optional[LearningEvent] = None) -> DetectionContext:
    """Derive the detector input for a stored event and its predecessor."""

    aux = event.auxiliary
    speed = aux.playback_speed if aux is not None else None
    if speed is None and isinstance(event.action, VideoSpeedChanged):
        speed = event.action.playback_speed

    gap = None
    if previous is not None:
        gap = (event.timestamp - previous.timestamp).total_seconds()

    return DetectionContext(
        user_id=event.user_id,
        file_id=event.file_id,
        is_hidden=aux.is_hidden if aux is not None else None,
        is_muted=aux.is_muted if aux is not None else None,
        playback_speed=speed,
        time_gap_seconds=gap,
        timestamp=event.timestamp,
        evidence=dict(aux.evidence) if aux is not None else {},
    )


def scan_events(events: Sequence[LearningEvent], rules: CompletionRules = DEFAULT_RULES) -> List[SuspiciousActivity]:
    """
    Replay the detector over an ordered history, one context per event.

    Time gaps are measured only between consecutive events of the same
    (user, file) pair.
    """

    activities: List[SuspiciousActivity] = []
    previous: Optional[LearningEvent] = None
    for event in events:
        if previous is not None and (previous.user_id, previous.file_id) != (event.user_id, event.file_id):
            previous = None
        activities.extend(detect_suspicious_activity(context_from_event(event, previous), rules))
        previous = event
    return activities


def generate_activity_report(events: Sequence[LearningEvent], rules: CompletionRules = DEFAULT_RULES) -> pd.DataFrame:
    rows = [a.as_record() for a in scan_events(events, rules)]
    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)
