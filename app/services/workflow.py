"""
Status state machines for feedback and tasks.

Feedback never moves on its own; its status changes either through a direct
edit (any enumerated value) or as a cascade from a task or comment mutation.
Tasks move along an ordered board:

    backlog -> next-up -> in-progress -> testing -> completed

with a rejection edge ``testing -> next-up``. The guided "move forward"
control advances one column at a time, except at ``testing`` where a review
decision is required. Direct edits bypass the sequence entirely.
"""
from app.models.feedback import FeedbackStatus
from app.models.task import TaskStatus, TaskPriority
from app.services.errors import ValidationError, Conflict

TASK_SEQUENCE = (
    TaskStatus.BACKLOG,
    TaskStatus.NEXT_UP,
    TaskStatus.IN_PROGRESS,
    TaskStatus.TESTING,
    TaskStatus.COMPLETED,
)

# Where a rejected task goes back to
TASK_REJECT_TARGET = {TaskStatus.TESTING: TaskStatus.NEXT_UP}


def parse_feedback_status(value) -> FeedbackStatus:
    try:
        return FeedbackStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid feedback status: {value!r}") from None


def parse_task_status(value) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid task status: {value!r}") from None


def parse_task_priority(value) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise ValidationError(f"Invalid task priority: {value!r}") from None


def next_task_status(current) -> TaskStatus:
    """One step forward along the board; testing and completed have no automatic successor."""
    status = parse_task_status(current)
    if status is TaskStatus.TESTING:
        raise Conflict("Task is in testing; approve or reject it instead")
    if status is TaskStatus.COMPLETED:
        raise Conflict("Task is already completed")
    return TASK_SEQUENCE[TASK_SEQUENCE.index(status) + 1]


def review_task_status(current, approved: bool) -> TaskStatus:
    status = parse_task_status(current)
    if status is not TaskStatus.TESTING:
        raise Conflict("Only tasks in testing can be reviewed")
    return TaskStatus.COMPLETED if approved else TASK_REJECT_TARGET[status]


# --- feedback cascades ---

def feedback_status_after_task_created(current) -> FeedbackStatus:
    status = parse_feedback_status(current)
    if status is FeedbackStatus.OPEN:
        return FeedbackStatus.IN_DEVELOPMENT
    return status


def completes_task(previous, new) -> bool:
    """True when an update moves a task into completed from any other status."""
    if new is None:
        return False
    return parse_task_status(new) is TaskStatus.COMPLETED and parse_task_status(previous) is not TaskStatus.COMPLETED


def feedback_status_after_task_completed(current) -> FeedbackStatus:
    parse_feedback_status(current)
    return FeedbackStatus.COMPLETED


def feedback_status_after_answer_marked(current) -> FeedbackStatus:
    # closes regardless of where the feedback was; unmarking never reverts it
    parse_feedback_status(current)
    return FeedbackStatus.CLOSED
