from .user import User, Role, ROLE_CHOICES
from .topic import Topic
from .feedback import Feedback, FeedbackStatus, FEEDBACK_STATUS_CHOICES
from .comment import Comment, DELETED_COMMENT_MARKER
from .upvote import Upvote
from .task import Task, TaskStatus, TaskPriority, TASK_STATUS_CHOICES, TASK_PRIORITY_CHOICES
from .changelog import Changelog

__all__ = [
    "User",
    "Role",
    "ROLE_CHOICES",
    "Topic",
    "Feedback",
    "FeedbackStatus",
    "FEEDBACK_STATUS_CHOICES",
    "Comment",
    "DELETED_COMMENT_MARKER",
    "Upvote",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TASK_STATUS_CHOICES",
    "TASK_PRIORITY_CHOICES",
    "Changelog",
]
