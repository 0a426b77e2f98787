# ABOUTME: Tests PDF completion checks for opening, reading duration, and last-page coverage.
# ABOUTME: Also covers error wrapping and the detailed progress view.

from datetime import datetime, timedelta, timezone

import pytest

from src.common.config import CompletionRules
from src.common.errors import EventLogError, ValidationFailedError
from src.common.event_log import InMemoryEventLog
from src.common.schemas import LearningEvent, PdfClose, PdfFinish, PdfMetadata, PdfOpen, PdfPageTurn, VideoPlay
from src.completion.pdf_validator import (
    PdfCompletionValidator,
    duration_minutes,
    max_page_viewed,
    reached_last_page,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _event(action, minutes=0.0, user_id="u1", file_id="doc"):
    return LearningEvent(user_id=user_id, file_id=file_id, timestamp=T0 + timedelta(minutes=minutes), action=action)


def _full_read(total_pages=3, minutes_per_page=2.0):
    events = [_event(PdfOpen(page_num=1))]
    for page in range(2, total_pages + 1):
        events.append(_event(PdfPageTurn(page), minutes=(page - 1) * minutes_per_page))
    events.append(_event(PdfFinish(page_num=total_pages), minutes=total_pages * minutes_per_page))
    return events


def _validator(events, subjects=(PdfMetadata("doc", 3),), rules=CompletionRules()):
    return PdfCompletionValidator(InMemoryEventLog(events, subjects), rules)


def test_empty_history_is_invalid():
    result = _validator([]).validate("doc", "u1")

    assert result.is_opened is False
    assert result.duration_minutes == 0
    assert result.reached_last_page is False
    assert result.is_valid is False


def test_complete_reading_is_valid():
    result = _validator(_full_read()).validate("doc", "u1")

    assert result.is_opened
    assert result.duration_minutes == 6
    assert result.reached_last_page
    assert result.is_valid


def test_short_reading_fails_duration_floor():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(2), minutes=1), _event(PdfPageTurn(3), minutes=3)]
    result = _validator(events).validate("doc", "u1")

    assert result.is_opened
    assert result.reached_last_page
    assert result.duration_minutes == 3
    assert not result.is_valid


def test_duration_floors_partial_minutes():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(3), minutes=5.99)]
    assert duration_minutes(events) == 5


def test_single_event_has_zero_duration():
    assert duration_minutes([_event(PdfOpen(1), minutes=30)]) == 0


def test_duration_spans_every_action_type():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(3), minutes=2), _event(PdfClose(), minutes=9)]
    assert duration_minutes(events) == 9


def test_missing_open_event_is_invalid():
    events = [_event(PdfPageTurn(1)), _event(PdfPageTurn(3), minutes=10)]
    result = _validator(events).validate("doc", "u1")

    assert not result.is_opened
    assert result.reached_last_page
    assert not result.is_valid


def test_unfinished_document_fails_last_page_check():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(2), minutes=10)]
    result = _validator(events).validate("doc", "u1")

    assert not result.reached_last_page
    assert not result.is_valid


def test_unknown_page_count_accepts_any_page_event():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(2), minutes=6)]
    result = _validator(events, subjects=()).validate("doc", "u1")

    assert result.reached_last_page
    assert result.is_valid


def test_unknown_page_count_accepts_open_without_page():
    events = [_event(PdfOpen()), _event(PdfOpen(), minutes=6)]
    result = _validator(events, subjects=()).validate("doc", "u1")

    assert result.reached_last_page
    assert result.is_valid


def test_unknown_page_count_needs_some_page_event():
    assert reached_last_page([_event(PdfFinish(page_num=7))], None)
    assert not reached_last_page([_event(PdfFinish()), _event(PdfClose())], None)
    assert not reached_last_page([_event(VideoPlay(3.0))], None)
    assert not reached_last_page([], None)


def test_zero_page_count_is_treated_as_unknown():
    assert reached_last_page([_event(PdfOpen(1))], 0)


def test_max_page_ignores_events_without_pages():
    events = [_event(PdfOpen()), _event(PdfPageTurn(4)), _event(PdfClose()), _event(VideoPlay(3.0))]
    assert max_page_viewed(events) == 4


def test_reader_errors_become_validation_failed():
    class BrokenLog(InMemoryEventLog):
        def fetch_pdf_metadata(self, file_id):
            raise EventLogError("connection reset")

    validator = PdfCompletionValidator(BrokenLog(_full_read()))
    with pytest.raises(ValidationFailedError) as excinfo:
        validator.validate("doc", "u1")
    assert isinstance(excinfo.value.__cause__, EventLogError)


def test_custom_duration_floor():
    events = [_event(PdfOpen(1)), _event(PdfPageTurn(3), minutes=2)]
    result = _validator(events, rules=CompletionRules(pdf_min_duration_minutes=2)).validate("doc", "u1")
    assert result.is_valid


def test_events_for_other_users_are_ignored():
    events = _full_read() + [_event(PdfOpen(1), minutes=60, user_id="u2")]
    assert _validator(events).validate("doc", "u1").duration_minutes == 6


def test_learning_progress_reports_access_window():
    events = _full_read()
    progress = _validator(events).learning_progress("doc", "u1")

    assert progress.total_pages == 3
    assert progress.max_page_viewed == 3
    assert progress.duration_minutes == 6
    assert progress.first_access == T0
    assert progress.last_access == T0 + timedelta(minutes=6)
    assert len(progress.events) == len(events)


def test_learning_progress_without_data():
    progress = _validator([], subjects=()).learning_progress("doc", "u1")

    assert progress.total_pages == 0
    assert progress.max_page_viewed == 0
    assert progress.first_access is None
    assert progress.last_access is None
