import pytest

from app.models import FeedbackStatus, TaskStatus
from app.services import workflow
from app.services.errors import Conflict, ValidationError


@pytest.mark.parametrize("current,expected", [
    ("backlog", TaskStatus.NEXT_UP),
    ("next-up", TaskStatus.IN_PROGRESS),
    ("in-progress", TaskStatus.TESTING),
])
def test_next_task_status_moves_one_column(current, expected):
    assert workflow.next_task_status(current) is expected


def test_next_task_status_stops_at_testing_and_completed():
    with pytest.raises(Conflict):
        workflow.next_task_status("testing")
    with pytest.raises(Conflict):
        workflow.next_task_status("completed")


def test_review_approves_or_rejects_from_testing_only():
    assert workflow.review_task_status("testing", True) is TaskStatus.COMPLETED
    assert workflow.review_task_status("testing", False) is TaskStatus.NEXT_UP
    with pytest.raises(Conflict):
        workflow.review_task_status("in-progress", True)


def test_unknown_values_are_validation_errors():
    with pytest.raises(ValidationError):
        workflow.parse_task_status("done")
    with pytest.raises(ValidationError):
        workflow.parse_feedback_status("archived")
    with pytest.raises(ValidationError):
        workflow.parse_task_priority("critical")


def test_task_creation_only_moves_open_feedback():
    assert workflow.feedback_status_after_task_created("open") is FeedbackStatus.IN_DEVELOPMENT
    for status in ("in-development", "completed", "closed"):
        assert workflow.feedback_status_after_task_created(status).value == status


def test_completes_task_only_on_transition_into_completed():
    assert workflow.completes_task("testing", "completed")
    assert workflow.completes_task("backlog", "completed")
    assert not workflow.completes_task("completed", "completed")
    assert not workflow.completes_task("testing", "next-up")
    assert not workflow.completes_task("testing", None)


def test_answer_always_closes():
    for status in ("open", "in-development", "completed", "closed"):
        assert workflow.feedback_status_after_answer_marked(status) is FeedbackStatus.CLOSED
