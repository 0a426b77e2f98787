# ABOUTME: Declares the error taxonomy raised by the completion validators.
# ABOUTME: Separates store failures, missing subjects, and malformed payloads.


class CompletionError(Exception):
    """Base class for every error raised by the completion engine."""


class SubjectNotFoundError(CompletionError):
    """Raised when a subject has no metadata in the event log."""

    def __init__(self, file_id: str):
        super().__init__(f"Video not found: {file_id}")
        self.file_id = file_id


class ValidationFailedError(CompletionError):
    """Raised when a PDF validation cannot read the data it needs."""


class EventLogError(CompletionError):
    """Raised by event log readers when the underlying store fails."""


class EventPayloadError(CompletionError, ValueError):
    """Raised when a raw event row cannot be turned into a typed event."""


class UnknownActionError(EventPayloadError):
    def __init__(self, action: str, subject_type: str):
        super().__init__(f"Unknown {subject_type} action '{action}'.")
        self.action = action
        self.subject_type = subject_type
