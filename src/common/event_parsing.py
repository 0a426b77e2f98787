# ABOUTME: Converts loosely-typed event rows (DB rows, JSON payloads) into typed events.
# ABOUTME: Maps action names onto the closed PDF and video action variants.

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import EventPayloadError, UnknownActionError
from .schemas import (
    EventAuxiliary,
    LearningEvent,
    PdfAction,
    PdfClose,
    PdfFinish,
    PdfOpen,
    PdfPageTurn,
    VideoAction,
    VideoFinish,
    VideoPause,
    VideoPlay,
    VideoSeek,
    VideoSpeedChanged,
    VideoTimeUpdate,
)

PDF_SUBJECT = "pdf"
VIDEO_SUBJECT = "video"

PDF_ACTIONS = {"open", "page_turn", "next_page", "finish", "close"}
VIDEO_ACTIONS = {"play", "pause", "seek", "time_update", "speed_changed", "finish"}


class EventRow(BaseModel):
    """Raw event row as stored by the learning-log endpoints."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    file_id: str
    timestamp: datetime
    action: str = Field(validation_alias=AliasChoices("action", "action_type"))
    subject_type: Optional[str] = None
    page_num: Optional[int] = Field(default=None, ge=1)
    current_time: Optional[float] = Field(default=None, ge=0)
    playback_speed: Optional[float] = None
    is_hidden: Optional[bool] = None
    is_muted: Optional[bool] = None
    evidence: Dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "subject_type", "page_num", "current_time", "playback_speed", "is_hidden", "is_muted", mode="before"
    )
    @classmethod
    def _nan_to_none(cls, value):
        # Missing cells come back from parquet as NaN.
        if isinstance(value, float) and math.isnan(value):
            return None
        return value

    @field_validator("evidence", mode="before")
    @classmethod
    def _missing_evidence(cls, value):
        return {} if value is None else value

    @field_validator("action", "subject_type")
    @classmethod
    def _normalize_name(cls, value):
        return value.strip().lower() if value is not None else value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are stored as UTC; keeps every event comparable.
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _require_time(row: EventRow) -> float:
    if row.current_time is None:
        raise EventPayloadError(f"Video action '{row.action}' requires current_time.")
    return row.current_time


def _require_page(row: EventRow) -> int:
    if row.page_num is None:
        raise EventPayloadError(f"PDF action '{row.action}' requires page_num.")
    return row.page_num


def parse_pdf_action(row: EventRow) -> PdfAction:
    name = row.action
    if name == "open":
        return PdfOpen(page_num=_require_page(row))
    if name in ("page_turn", "next_page"):
        return PdfPageTurn(page_num=_require_page(row))
    if name == "finish":
        return PdfFinish(page_num=_require_page(row))
    if name == "close":
        return PdfClose(page_num=row.page_num)
    raise UnknownActionError(name, PDF_SUBJECT)


_VIDEO_BUILDERS: Dict[str, Callable[[EventRow], VideoAction]] = {
    "play": lambda row: VideoPlay(current_time=_require_time(row)),
    "pause": lambda row: VideoPause(current_time=_require_time(row)),
    "seek": lambda row: VideoSeek(current_time=_require_time(row)),
    "time_update": lambda row: VideoTimeUpdate(current_time=_require_time(row)),
    "speed_changed": lambda row: VideoSpeedChanged(playback_speed=row.playback_speed, current_time=row.current_time),
    "finish": lambda row: VideoFinish(current_time=_require_time(row)),
}


def parse_video_action(row: EventRow) -> VideoAction:
    builder = _VIDEO_BUILDERS.get(row.action)
    if builder is None:
        raise UnknownActionError(row.action, VIDEO_SUBJECT)
    return builder(row)


def _resolve_subject(row: EventRow) -> str:
    if row.subject_type:
        if row.subject_type not in (PDF_SUBJECT, VIDEO_SUBJECT):
            raise EventPayloadError(f"Unsupported subject type '{row.subject_type}'.")
        return row.subject_type
    if row.action in PDF_ACTIONS and row.action not in VIDEO_ACTIONS:
        return PDF_SUBJECT
    if row.action in VIDEO_ACTIONS and row.action not in PDF_ACTIONS:
        return VIDEO_SUBJECT
    if row.action in PDF_ACTIONS:
        # "finish" exists for both subjects; only video finishes carry a playback position.
        return VIDEO_SUBJECT if row.current_time is not None else PDF_SUBJECT
    raise UnknownActionError(row.action, "learning")


def parse_event(payload: Mapping[str, Any]) -> LearningEvent:
    """
    Build a typed LearningEvent from a raw row or JSON payload.

    The subject type is taken from ``subject_type`` when present, otherwise
    inferred from the action name.
    """

    try:
        row = EventRow.model_validate(dict(payload))
    except ValidationError as exc:
        raise EventPayloadError(f"Invalid event payload: {exc}") from exc

    subject = _resolve_subject(row)
    action = parse_pdf_action(row) if subject == PDF_SUBJECT else parse_video_action(row)

    auxiliary = None
    if row.playback_speed is not None or row.is_hidden is not None or row.is_muted is not None or row.evidence:
        auxiliary = EventAuxiliary(
            playback_speed=row.playback_speed,
            is_hidden=row.is_hidden,
            is_muted=row.is_muted,
            evidence=row.evidence,
        )

    return LearningEvent(
        user_id=row.user_id,
        file_id=row.file_id,
        timestamp=row.timestamp,
        action=action,
        auxiliary=auxiliary,
    )
