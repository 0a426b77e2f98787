# ABOUTME: Exposes the PDF and video completion validators and the activity detector.
# ABOUTME: Each component is stateless and reads only through an EventLogReader.

from .pdf_validator import PdfCompletionValidator
from .suspicious_detector import detect_suspicious_activity, is_suspicious_activity_type, scan_events
from .video_validator import VideoCompletionValidator, calculate_watched_seconds

__all__ = [
    "PdfCompletionValidator",
    "VideoCompletionValidator",
    "calculate_watched_seconds",
    "detect_suspicious_activity",
    "is_suspicious_activity_type",
    "scan_events",
]
