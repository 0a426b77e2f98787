# ABOUTME: Decides whether a learner meaningfully read a PDF from its event history.
# ABOUTME: Combines opened, minimum-duration, and last-page checks into one verdict.

from __future__ import annotations

import logging
from typing import Optional, Sequence

from src.common.config import DEFAULT_RULES, CompletionRules
from src.common.errors import EventLogError, ValidationFailedError
from src.common.event_log import EventLogReader
from src.common.schemas import (
    LearningEvent,
    PdfClose,
    PdfFinish,
    PdfLearningProgress,
    PdfOpen,
    PdfPageTurn,
    PdfValidationResult,
    order_events,
)

logger = logging.getLogger(__name__)


def _page_of(event: LearningEvent) -> Optional[int]:
    action = event.action
    if isinstance(action, (PdfOpen, PdfPageTurn, PdfFinish, PdfClose)):
        return action.page_num
    # Video actions never carry a page number.
    return None


def is_opened(events: Sequence[LearningEvent]) -> bool:
    return any(isinstance(e.action, PdfOpen) for e in events)


def duration_minutes(events: Sequence[LearningEvent]) -> int:
    """Whole minutes between the first and last event of an ordered history."""

    if len(events) < 2:
        return 0
    elapsed = (events[-1].timestamp - events[0].timestamp).total_seconds()
    return int(elapsed // 60)


def max_page_viewed(events: Sequence[LearningEvent]) -> Optional[int]:
    pages = [p for p in (_page_of(e) for e in events) if p is not None]
    return max(pages) if pages else None


def reached_last_page(events: Sequence[LearningEvent], total_pages: Optional[int]) -> bool:
    """
    True when the furthest page viewed is at least ``total_pages``.

    With an unknown page count any page-bearing event is accepted, as is any
    open or page turn even when it carries no page.
    """

    max_page = max_page_viewed(events)
    if not total_pages:
        viewed = max_page is not None or any(isinstance(e.action, (PdfOpen, PdfPageTurn)) for e in events)
        logger.debug("Page count unknown; accepting any page event (found=%s).", viewed)
        return viewed
    return (max_page or 0) >= total_pages


class PdfCompletionValidator:
    """
    Validates PDF reading against three rules, all required:

    1. the file was opened,
    2. first-to-last event span is at least ``pdf_min_duration_minutes``,
    3. the last page was reached.
    """

    def __init__(self, reader: EventLogReader, rules: CompletionRules = DEFAULT_RULES):
        self.reader = reader
        self.rules = rules

    def validate(self, file_id: str, user_id: str) -> PdfValidationResult:
        try:
            events = order_events(self.reader.fetch_events(user_id, file_id))
            metadata = self.reader.fetch_pdf_metadata(file_id)
        except EventLogError as exc:
            logger.error("PDF validation failed for user=%s file=%s: %s", user_id, file_id, exc)
            raise ValidationFailedError("PDF validation failed") from exc

        total_pages = metadata.total_pages if metadata is not None else None
        opened = is_opened(events)
        minutes = duration_minutes(events)
        last_page = reached_last_page(events, total_pages)

        return PdfValidationResult(
            is_opened=opened,
            duration_minutes=minutes,
            reached_last_page=last_page,
            is_valid=opened and minutes >= self.rules.pdf_min_duration_minutes and last_page,
        )

    def learning_progress(self, file_id: str, user_id: str) -> PdfLearningProgress:
        events = order_events(self.reader.fetch_events(user_id, file_id))
        metadata = self.reader.fetch_pdf_metadata(file_id)

        return PdfLearningProgress(
            events=events,
            total_pages=(metadata.total_pages or 0) if metadata is not None else 0,
            max_page_viewed=max_page_viewed(events) or 0,
            duration_minutes=duration_minutes(events),
            first_access=events[0].timestamp if events else None,
            last_access=events[-1].timestamp if events else None,
        )
