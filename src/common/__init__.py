# ABOUTME: Makes the shared common package importable across validators.
# ABOUTME: Re-exports event schemas, readers, rules, and errors for convenience.

from .config import CompletionRules, load_rules
from .errors import (
    CompletionError,
    EventLogError,
    EventPayloadError,
    SubjectNotFoundError,
    UnknownActionError,
    ValidationFailedError,
)
from .event_log import EventLogReader, InMemoryEventLog, ParquetEventLog
from .event_parsing import parse_event
from .schemas import (
    DetectionContext,
    LearningEvent,
    PdfMetadata,
    PdfValidationResult,
    SuspiciousActivity,
    VideoMetadata,
    VideoValidationResult,
)

__all__ = [
    "CompletionError",
    "CompletionRules",
    "DetectionContext",
    "EventLogError",
    "EventLogReader",
    "EventPayloadError",
    "InMemoryEventLog",
    "LearningEvent",
    "ParquetEventLog",
    "PdfMetadata",
    "PdfValidationResult",
    "SubjectNotFoundError",
    "SuspiciousActivity",
    "UnknownActionError",
    "ValidationFailedError",
    "VideoMetadata",
    "VideoValidationResult",
    "load_rules",
    "parse_event",
]
