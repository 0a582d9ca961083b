"""
Task schema and payload validation.

Task lifecycle:
  TODO ⇄ IN_PROGRESS ⇄ COMPLETED   (any state may move to any other)

A Task is an immutable snapshot of one stored document. Changes go through
the store as whole-field or partial-field updates; the next load hands back
fresh snapshots.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Tuple, Dict, Any, Iterable, Mapping

from .errors import TaskValidationError


class TaskStatus(Enum):
    """Valid task states; also the lane ids of the board."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

    @classmethod
    def from_str(cls, value: str) -> "TaskStatus":
        # Older documents spell the lanes with hyphens ("TO-DO", "IN-PROGRESS")
        key = (value or "").strip().upper().replace("-", "_")
        if key == "TO_DO":
            key = "TODO"
        try:
            return cls[key]
        except KeyError:
            return cls.TODO


class TaskCategory(Enum):
    """Categories a stored task can carry."""
    WORK = "WORK"
    PERSONAL = "PERSONAL"

    @classmethod
    def from_str(cls, value: str) -> "TaskCategory":
        try:
            return cls[(value or "").strip().upper()]
        except KeyError:
            return cls.WORK


class FilterCategory(Enum):
    """Category choices of the filter bar. ALL is never stored on a task."""
    ALL = "ALL"
    WORK = "WORK"
    PERSONAL = "PERSONAL"

    def matches(self, category: TaskCategory) -> bool:
        return self is FilterCategory.ALL or self.value == category.value


STATUS_ORDER: Tuple[TaskStatus, ...] = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
)

# Fields a client may write. id is assigned by the persistence service.
WRITABLE_FIELDS = (
    "title", "description", "status", "category", "due_date",
    "created_at", "updated_at", "owner_id", "tags", "attachments",
)
IMMUTABLE_FIELDS = ("id", "created_at", "owner_id")
_TEXT_FIELDS = ("title", "description", "created_at", "updated_at", "owner_id")
_LIST_FIELDS = ("tags", "attachments")


def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today() -> str:
    """Current calendar day as YYYY-MM-DD."""
    return date.today().isoformat()


def add_tag(tags: Iterable[str], tag: str) -> Tuple[str, ...]:
    """Append a tag unless it is blank or already present."""
    current = tuple(tags)
    new_tag = (tag or "").strip()
    if not new_tag or new_tag in current:
        return current
    return current + (new_tag,)


def unique_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    """Drop repeated tags, keeping the first occurrence of each."""
    return tuple(dict.fromkeys(tags))


def remove_tag(tags: Iterable[str], tag: str) -> Tuple[str, ...]:
    return tuple(t for t in tags if t != tag)


def append_attachments(attachments: Iterable[str], refs: Iterable[str]) -> Tuple[str, ...]:
    """Attachments are append-only: existing order is kept, new refs go last."""
    return tuple(attachments) + tuple(refs)


@dataclass(frozen=True)
class Task:
    """One persisted task, as last read from the persistence service."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    category: TaskCategory = TaskCategory.WORK
    due_date: str = ""              # YYYY-MM-DD, compared as a string
    created_at: str = ""
    updated_at: str = ""
    owner_id: str = ""
    tags: Tuple[str, ...] = ()
    attachments: Tuple[str, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persistence document shape."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "category": self.category.value,
            "due_date": self.due_date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "owner_id": self.owner_id,
            "tags": list(self.tags),
            "attachments": list(self.attachments),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Deserialize a stored document. Bad enum values fall back to defaults."""
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=TaskStatus.from_str(data.get("status", "")),
            category=TaskCategory.from_str(data.get("category", "")),
            due_date=data.get("due_date") or "",
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
            owner_id=data.get("owner_id") or "",
            tags=unique_tags(data.get("tags") or ()),
            attachments=tuple(data.get("attachments") or ()),
        )


@dataclass
class TaskDraft:
    """Candidate task produced by the task form."""
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    category: TaskCategory = TaskCategory.WORK
    due_date: str = field(default_factory=today)
    tags: Tuple[str, ...] = ()
    attachments: Tuple[str, ...] = ()

    @classmethod
    def from_task(cls, task: Task) -> "TaskDraft":
        return cls(
            title=task.title,
            description=task.description,
            status=task.status,
            category=task.category,
            due_date=task.due_date,
            tags=task.tags,
            attachments=task.attachments,
        )

    def to_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "category": self.category.value,
            "due_date": self.due_date,
            "tags": list(self.tags),
            "attachments": list(self.attachments),
        }


def _check_date(value: Any) -> str:
    if not isinstance(value, str):
        raise TaskValidationError(f"due_date must be a string, got: {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise TaskValidationError(f"Invalid due_date format: '{value}' (expected YYYY-MM-DD)")
    return value


def validate_payload(payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Check the structural shape of a task payload and return a normalized copy.

    Enum members are converted to their stored values and tuples to lists.
    A full payload (partial=False) must carry owner_id, created_at and
    updated_at; missing optional fields get their defaults. A partial payload
    (an update) must not touch id, created_at or owner_id. Repeated tags are
    dropped.

    Raises:
        TaskValidationError with a user-facing message on failure.
    """
    if not isinstance(payload, Mapping):
        raise TaskValidationError("Task payload must be a mapping")

    if partial:
        frozen = sorted(set(payload) & set(IMMUTABLE_FIELDS))
        if frozen:
            raise TaskValidationError(f"Immutable task fields: {', '.join(frozen)}")

    unknown = set(payload) - set(WRITABLE_FIELDS)
    if unknown:
        raise TaskValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    result: Dict[str, Any] = {}
    for name, value in payload.items():
        if name == "status":
            raw = value.value if isinstance(value, TaskStatus) else value
            if not isinstance(raw, str) or raw not in {s.value for s in TaskStatus}:
                raise TaskValidationError(
                    f"Invalid status: '{raw}'. Allowed: {', '.join(s.value for s in TaskStatus)}"
                )
            result[name] = raw
        elif name == "category":
            raw = value.value if isinstance(value, (TaskCategory, FilterCategory)) else value
            if not isinstance(raw, str) or raw not in {c.value for c in TaskCategory}:
                raise TaskValidationError(
                    f"Invalid category: '{raw}'. Allowed: {', '.join(c.value for c in TaskCategory)}"
                )
            result[name] = raw
        elif name == "due_date":
            result[name] = _check_date(value)
        elif name in _LIST_FIELDS:
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
                raise TaskValidationError(f"{name} must be a list of strings")
            if not all(isinstance(v, str) for v in value):
                raise TaskValidationError(f"{name} must be a list of strings")
            result[name] = list(unique_tags(value)) if name == "tags" else list(value)
        elif name in _TEXT_FIELDS:
            if not isinstance(value, str):
                raise TaskValidationError(f"{name} must be a string, got: {value!r}")
            result[name] = value

    if not partial:
        missing = [f for f in ("owner_id", "created_at", "updated_at") if not result.get(f)]
        if missing:
            raise TaskValidationError(f"Missing required task fields: {', '.join(missing)}")
        result.setdefault("title", "")
        result.setdefault("description", "")
        result.setdefault("status", TaskStatus.TODO.value)
        result.setdefault("category", TaskCategory.WORK.value)
        result.setdefault("due_date", today())
        result.setdefault("tags", [])
        result.setdefault("attachments", [])
        if result["updated_at"] < result["created_at"]:
            raise TaskValidationError("updated_at must not be earlier than created_at")

    return result


def new_task_payload(draft: TaskDraft, owner_id: str, now: Optional[str] = None) -> Dict[str, Any]:
    """Insert document for a new task: draft fields plus owner and timestamps."""
    stamp = now or utc_now()
    payload = draft.to_fields()
    payload.update({"created_at": stamp, "updated_at": stamp, "owner_id": owner_id})
    return payload
