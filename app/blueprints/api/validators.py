from typing import Any, List, Tuple

from app.models.feedback import FEEDBACK_STATUS_CHOICES
from app.models.task import TASK_STATUS_CHOICES, TASK_PRIORITY_CHOICES
from app.utils.validators import clean_str, check_length, is_valid_hex_color, parse_id

Result = Tuple[dict, List[str]]


def _as_dict(payload: Any) -> Tuple[dict, List[str]]:
    if not isinstance(payload, dict):
        return {}, ["payload: must be a JSON object"]
    return payload, []


def _choice(errors: list, field: str, val: Any, choices: tuple):
    if val not in choices:
        errors.append(f"{field}: must be one of {', '.join(choices)}")


def _id_field(errors: list, out: dict, data: dict, field: str, *, required: bool, nullable: bool = False):
    if field not in data:
        if required:
            errors.append(f"{field}: required")
        return
    raw = data.get(field)
    if raw in (None, "") and nullable:
        out[field] = None
        return
    val = parse_id(raw)
    if val is None:
        errors.append(f"{field}: must be a positive integer id")
    else:
        out[field] = val


def _title(errors: list, out: dict, data: dict, *, required: bool):
    if "title" not in data and not required:
        return
    title = clean_str(data.get("title"))
    check_length(errors, "title", title, min_len=5, max_len=100)
    out["title"] = title


def _long_description(errors: list, out: dict, data: dict, *, required: bool):
    if "description" not in data and not required:
        return
    description = clean_str(data.get("description"))
    check_length(errors, "description", description, min_len=10)
    out["description"] = description


# --- topics ---

def validate_topic_payload(payload: Any, *, partial: bool = False) -> Result:
    data, errors = _as_dict(payload)
    out: dict = {}
    if errors:
        return out, errors

    if "name" in data or not partial:
        name = clean_str(data.get("name"))
        check_length(errors, "name", name, min_len=2, max_len=50)
        out["name"] = name
    if "description" in data:
        out["description"] = clean_str(data.get("description"))
    if "color" in data:
        color = clean_str(data.get("color"))
        if not is_valid_hex_color(color):
            errors.append("color: must be a valid hex color")
        out["color"] = color
    if "icon" in data:
        out["icon"] = clean_str(data.get("icon"), max_len=64)
    return out, errors


# --- feedback ---

def validate_feedback_payload(payload: Any, *, partial: bool = False) -> Result:
    data, errors = _as_dict(payload)
    out: dict = {}
    if errors:
        return out, errors

    _title(errors, out, data, required=not partial)
    _long_description(errors, out, data, required=not partial)
    _id_field(errors, out, data, "topic_id", required=not partial)
    if partial and "status" in data:
        _choice(errors, "status", data.get("status"), FEEDBACK_STATUS_CHOICES)
        out["status"] = data.get("status")
    return out, errors


def validate_comment_payload(payload: Any) -> Result:
    data, errors = _as_dict(payload)
    out: dict = {}
    if errors:
        return out, errors

    content = clean_str(data.get("content"))
    if content is None:
        errors.append("content: comment cannot be empty")
    elif len(content) > 1000:
        errors.append("content: comment is too long")
    out["content"] = content
    _id_field(errors, out, data, "parent_id", required=False, nullable=True)
    return out, errors


# --- tasks ---

def validate_task_payload(payload: Any, *, partial: bool = False) -> Result:
    data, errors = _as_dict(payload)
    out: dict = {}
    if errors:
        return out, errors

    _title(errors, out, data, required=not partial)
    if "description" in data:
        out["description"] = clean_str(data.get("description")) or ""
    if "status" in data or not partial:
        status = data.get("status", "backlog")
        _choice(errors, "status", status, TASK_STATUS_CHOICES)
        out["status"] = status
    if "priority" in data or not partial:
        priority = data.get("priority", "medium")
        _choice(errors, "priority", priority, TASK_PRIORITY_CHOICES)
        out["priority"] = priority
    if not partial:
        _id_field(errors, out, data, "feedback_id", required=True)
    _id_field(errors, out, data, "assignee_id", required=False, nullable=True)
    if not partial and out.get("assignee_id", 0) is None:
        out.pop("assignee_id")
    return out, errors


def validate_review_payload(payload: Any) -> Result:
    data, errors = _as_dict(payload)
    if errors:
        return {}, errors
    approved = data.get("approved")
    if not isinstance(approved, bool):
        return {}, ["approved: must be true or false"]
    return {"approved": approved}, []


# --- changelog ---

def validate_changelog_payload(payload: Any, *, partial: bool = False) -> Result:
    data, errors = _as_dict(payload)
    out: dict = {}
    if errors:
        return out, errors

    _title(errors, out, data, required=not partial)
    _long_description(errors, out, data, required=not partial)
    if not partial:
        _id_field(errors, out, data, "task_id", required=True)
    return out, errors
