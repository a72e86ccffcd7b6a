# src/taskboard/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, StrEnum
from typing import Any

from .dates import format_timestamp, parse_timestamp


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_raw(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


class Effort(StrEnum):
    S = "s"
    M = "m"
    L = "l"

    @classmethod
    def from_raw(cls, raw: str | None) -> Effort:
        if not raw:
            return cls.M
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.M


class ViewMode(StrEnum):
    LIST = "list"
    KANBAN = "kanban"
    TIMELINE = "timeline"
    SECTIONS = "sections"


VIEW_MODE_SEQUENCE: tuple[ViewMode, ...] = (
    ViewMode.LIST,
    ViewMode.KANBAN,
    ViewMode.TIMELINE,
    ViewMode.SECTIONS,
)


def next_view_mode(mode: ViewMode | str | None) -> ViewMode:
    """Advance list -> kanban -> timeline -> sections -> list; unknown modes restart at list."""
    try:
        idx = VIEW_MODE_SEQUENCE.index(ViewMode(mode))  # type: ignore[arg-type]
    except ValueError:
        return VIEW_MODE_SEQUENCE[0]
    return VIEW_MODE_SEQUENCE[(idx + 1) % len(VIEW_MODE_SEQUENCE)]


class ChangeKind(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FetchStrategy(Enum):
    """
    Field sets tried, in order, when listing tasks.

    REDUCED drops the columns added by later migrations so that a backend that
    has not been migrated yet still serves the core fields.
    """

    FULL = (
        "id",
        "title",
        "project_id",
        "created_by",
        "assigned_to",
        "owner_email",
        "completed",
        "completed_at",
        "inserted_at",
        "description",
        "due_date",
        "updated_by",
        "updated_at",
        "priority",
        "effort",
        "tags",
        "epic",
    )
    REDUCED = (
        "id",
        "title",
        "project_id",
        "created_by",
        "assigned_to",
        "owner_email",
        "completed",
        "completed_at",
        "inserted_at",
        "due_date",
        "priority",
    )

    @property
    def columns(self) -> tuple[str, ...]:
        return self.value

    @property
    def select(self) -> str:
        return ",".join(self.value)


FETCH_STRATEGIES: tuple[FetchStrategy, ...] = (FetchStrategy.FULL, FetchStrategy.REDUCED)


def _opt_str(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw)
    return s if s != "" else None


def _tags(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(t) for t in raw if isinstance(t, str))


@dataclass(slots=True, frozen=True)
class Task:
    """
    One task row as the backend reports it.

    Instances are immutable: the store replaces a task wholesale whenever the
    backend (a confirmed write or a push event) hands back a newer record.
    """

    id: str
    title: str
    project_id: str | None
    completed: bool = False
    completed_at: datetime | None = None
    inserted_at: datetime | None = None
    updated_at: datetime | None = None

    created_by: str | None = None
    assigned_to: str | None = None
    updated_by: str | None = None
    owner_email: str | None = None

    description: str | None = None
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    effort: Effort = Effort.M
    epic: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> Task:
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            project_id=_opt_str(row.get("project_id")),
            completed=bool(row.get("completed") or False),
            completed_at=parse_timestamp(row.get("completed_at")),
            inserted_at=parse_timestamp(row.get("inserted_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            created_by=_opt_str(row.get("created_by")),
            assigned_to=_opt_str(row.get("assigned_to")),
            updated_by=_opt_str(row.get("updated_by")),
            owner_email=_opt_str(row.get("owner_email")),
            description=row.get("description"),
            due_date=parse_timestamp(row.get("due_date")),
            priority=Priority.from_raw(row.get("priority")),
            effort=Effort.from_raw(row.get("effort")),
            epic=_opt_str(row.get("epic")),
            tags=_tags(row.get("tags")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "project_id": self.project_id,
            "completed": self.completed,
            "completed_at": format_timestamp(self.completed_at),
            "inserted_at": format_timestamp(self.inserted_at),
            "updated_at": format_timestamp(self.updated_at),
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "updated_by": self.updated_by,
            "owner_email": self.owner_email,
            "description": self.description,
            "due_date": format_timestamp(self.due_date),
            "priority": self.priority.value,
            "effort": self.effort.value,
            "epic": self.epic,
            "tags": list(self.tags),
        }

    @property
    def last_activity(self) -> datetime | None:
        stamps = [d for d in (self.updated_at, self.inserted_at) if d is not None]
        return max(stamps) if stamps else None

    def is_overdue(self, now: datetime) -> bool:
        return self.due_date is not None and not self.completed and self.due_date < now


@dataclass(slots=True, frozen=True)
class Subtask:
    id: str
    task_id: str
    title: str
    completed: bool = False
    assigned_to: str | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> Subtask:
        return cls(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            title=str(row.get("title") or ""),
            completed=bool(row.get("completed") or False),
            assigned_to=_opt_str(row.get("assigned_to")),
            due_date=parse_timestamp(row.get("due_date")),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            updated_by=_opt_str(row.get("updated_by")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "completed": self.completed,
            "assigned_to": self.assigned_to,
            "due_date": format_timestamp(self.due_date),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "updated_by": self.updated_by,
        }


SUBTASK_COLUMNS = "id,task_id,title,completed,assigned_to,due_date,created_at,updated_at,updated_by"


@dataclass(slots=True, frozen=True)
class Member:
    member_id: str
    label: str
    role: str = "member"


@dataclass(slots=True, frozen=True)
class TaskChange:
    """
    A push event from the backend.

    For DELETE the task usually carries only its id (and project_id when the
    backend replicates full rows).
    """

    kind: ChangeKind
    task: Task

    @classmethod
    def from_payload(cls, kind: str, row: Mapping[str, Any]) -> TaskChange:
        return cls(kind=ChangeKind(str(kind).upper()), task=Task.from_record(row))
