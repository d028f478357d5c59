"""Entity field rules for compass projects, tasks and documents."""

STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_CLOSED = "closed"

VALID_STATUSES = [STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_CLOSED]

TYPE_TASK = "task"
TYPE_EPIC = "epic"

VALID_TYPES = [TYPE_TASK, TYPE_EPIC]

# 0 is the most urgent. A task without a priority stores None.
PRIORITY_MIN = 0
PRIORITY_MAX = 3


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValueError(f"invalid status '{status}': must be one of {', '.join(VALID_STATUSES)}")


def validate_type(task_type: str) -> None:
    if task_type not in VALID_TYPES:
        raise ValueError(f"invalid type '{task_type}': must be one of {', '.join(VALID_TYPES)}")


def validate_priority(priority) -> None:
    if priority is None:
        return
    if isinstance(priority, bool) or not isinstance(priority, int) or not PRIORITY_MIN <= priority <= PRIORITY_MAX:
        raise ValueError(f"invalid priority '{priority}': must be {PRIORITY_MIN}-{PRIORITY_MAX} (0 is most urgent)")


def format_priority(priority) -> str:
    """Render a priority as ``P0``..``P3``, or ``-`` when unset."""
    if priority is None:
        return "-"
    return f"P{priority}"


def validate_task(task: dict) -> None:
    """Raise ValueError if the task dict breaks a field rule.

    Checks required fields, status, type and priority, and the shape of
    ``depends_on``: no self-reference, no repeats, and none at all on an epic.
    """
    if not task.get("id"):
        raise ValueError("task id is required")
    if not task.get("title"):
        raise ValueError("task title is required")
    if not task.get("project"):
        raise ValueError("task project is required")
    validate_status(task.get("status", ""))
    validate_type(task.get("type", ""))
    validate_priority(task.get("priority"))

    depends_on = task.get("depends_on") or []
    if task["type"] == TYPE_EPIC and depends_on:
        raise ValueError("epic-type tasks cannot have dependencies")
    seen = set()
    for dep in depends_on:
        if dep == task["id"]:
            raise ValueError("task cannot depend on itself")
        if dep in seen:
            raise ValueError(f"duplicate dependency '{dep}'")
        seen.add(dep)


def validate_project(project: dict) -> None:
    if not project.get("id"):
        raise ValueError("project id is required")
    if not project.get("name"):
        raise ValueError("project name is required")


def validate_document(document: dict) -> None:
    if not document.get("id"):
        raise ValueError("document id is required")
    if not document.get("title"):
        raise ValueError("document title is required")
    if not document.get("project"):
        raise ValueError("document project is required")
