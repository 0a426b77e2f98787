# ABOUTME: Defines the read contract the validators need from the learning-event store.
# ABOUTME: Ships an in-memory reader and a parquet-backed reader built on pandas.

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

import pandas as pd
import pyarrow as pa

from .errors import EventLogError, EventPayloadError
from .event_parsing import PDF_SUBJECT, VIDEO_SUBJECT, parse_event
from .schemas import LearningEvent, PdfMetadata, VideoMetadata

SubjectMetadata = Union[PdfMetadata, VideoMetadata]


class EventLogReader(Protocol):
    """Anything that can return a subject's ordered events and its metadata."""

    def fetch_events(self, user_id: str, file_id: str) -> List[LearningEvent]:
        ...

    def fetch_pdf_metadata(self, file_id: str) -> Optional[PdfMetadata]:
        ...

    def fetch_video_metadata(self, file_id: str) -> Optional[VideoMetadata]:
        ...


class InMemoryEventLog:
    """Reader over an already-loaded snapshot of events and subjects."""

    def __init__(self, events: Iterable[LearningEvent] = (), subjects: Iterable[SubjectMetadata] = ()):
        self._events = tuple(events)
        self._pdfs: Dict[str, PdfMetadata] = {}
        self._videos: Dict[str, VideoMetadata] = {}
        for subject in subjects:
            if isinstance(subject, PdfMetadata):
                self._pdfs[subject.file_id] = subject
            elif isinstance(subject, VideoMetadata):
                self._videos[subject.file_id] = subject
            else:
                raise TypeError(f"Unsupported subject metadata {subject!r}")

    def fetch_events(self, user_id: str, file_id: str) -> List[LearningEvent]:
        return [e for e in self._events if e.user_id == user_id and e.file_id == file_id]

    def fetch_pdf_metadata(self, file_id: str) -> Optional[PdfMetadata]:
        return self._pdfs.get(file_id)

    def fetch_video_metadata(self, file_id: str) -> Optional[VideoMetadata]:
        return self._videos.get(file_id)


EVENT_COLUMNS = ["user_id", "file_id", "timestamp", "action"]
SUBJECT_COLUMNS = ["file_id", "subject_type"]


def _read_parquet(path: Path, required: List[str]) -> pd.DataFrame:
    try:
        df = pd.read_parquet(path)
    except (OSError, pa.ArrowException) as exc:
        raise EventLogError(f"Could not read {path}: {exc}") from exc
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise EventLogError(f"{path} is missing columns: {', '.join(missing)}")
    return df


def _optional_number(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


class ParquetEventLog:
    """
    Reader over parquet exports of the learning-log tables.

    Each call re-reads the files, so every validation sees a point-in-time
    snapshot and the reader itself holds nothing mutable.

    Events parquet columns: user_id, file_id, timestamp, action, plus optional
    subject_type, page_num, current_time, playback_speed, is_hidden, is_muted.
    Subjects parquet columns: file_id, subject_type, plus optional total_pages
    and duration_seconds.
    """

    def __init__(self, events_path: Path, subjects_path: Optional[Path] = None):
        self.events_path = Path(events_path)
        self.subjects_path = Path(subjects_path) if subjects_path is not None else None

    def fetch_events(self, user_id: str, file_id: str) -> List[LearningEvent]:
        df = _read_parquet(self.events_path, EVENT_COLUMNS)
        df = df[(df["user_id"].astype(str) == str(user_id)) & (df["file_id"].astype(str) == str(file_id))]
        return self._parse_frame(df)

    def fetch_all_events(self) -> List[LearningEvent]:
        """Every stored event, grouped by (user, file) and time-ordered within each group."""

        return self._parse_frame(_read_parquet(self.events_path, EVENT_COLUMNS))

    def _parse_frame(self, df: pd.DataFrame) -> List[LearningEvent]:
        if df.empty:
            return []
        df = df.copy()
        df["user_id"] = df["user_id"].astype(str)
        df["file_id"] = df["file_id"].astype(str)
        if not pd.api.types.is_datetime64_any_dtype(df["timestamp"]):
            df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
        if df["timestamp"].isna().any():
            raise EventLogError(f"Corrupt event row in {self.events_path}: unparseable timestamp")
        df = df.sort_values(["user_id", "file_id", "timestamp"], kind="mergesort")

        events = []
        for record in df.to_dict(orient="records"):
            try:
                events.append(parse_event(record))
            except EventPayloadError as exc:
                raise EventLogError(f"Corrupt event row in {self.events_path}: {exc}") from exc
        return events

    def _subject_row(self, file_id: str, subject_type: str) -> Optional[dict]:
        if self.subjects_path is None:
            return None
        df = _read_parquet(self.subjects_path, SUBJECT_COLUMNS)
        match = df[
            (df["file_id"].astype(str) == str(file_id))
            & (df["subject_type"].astype(str).str.lower() == subject_type)
        ]
        if match.empty:
            return None
        return match.iloc[0].to_dict()

    def fetch_pdf_metadata(self, file_id: str) -> Optional[PdfMetadata]:
        row = self._subject_row(file_id, PDF_SUBJECT)
        if row is None:
            return None
        pages = _optional_number(row.get("total_pages"))
        return PdfMetadata(file_id=str(file_id), total_pages=int(pages) if pages is not None else None)

    def fetch_video_metadata(self, file_id: str) -> Optional[VideoMetadata]:
        row = self._subject_row(file_id, VIDEO_SUBJECT)
        if row is None:
            return None
        return VideoMetadata(file_id=str(file_id), total_duration_seconds=_optional_number(row.get("duration_seconds")))
