"""Data models exchanged between the panel components and the agent service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

JsonDict = Dict[str, Any]

DEFAULT_NOTIFICATION_TTL_MS = 4000
NOTIFICATION_KINDS = ("success", "error")

PLAN_PRIORITIES = ("low", "medium", "high")
PLAN_STATUSES = ("planned", "in_progress", "done")
PLAN_FILTERS = ("all",) + PLAN_STATUSES

NODE_TYPES = ("file", "dir")


@dataclass(frozen=True)
class Notification:
    """Transient user-facing message owned by the notification queue."""

    id: str
    kind: str
    title: str
    description: str = ""
    ttl_ms: int = DEFAULT_NOTIFICATION_TTL_MS

    def __post_init__(self) -> None:
        if self.kind not in NOTIFICATION_KINDS:
            raise ValueError(f"kind must be one of {NOTIFICATION_KINDS}, got {self.kind!r}.")
        if self.ttl_ms < 0:
            raise ValueError("ttl_ms must be a non-negative integer.")

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


def _clamp_progress(value: Any) -> int:
    try:
        progress = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, progress))


@dataclass(frozen=True)
class TaskState:
    """Snapshot of the single long-running agent task."""

    description: Optional[str] = None
    status: str = "pending"
    progress: int = 0
    updated_at: Optional[str] = None
    log: str = ""
    result: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[JsonDict]) -> "TaskState":
        payload = payload or {}
        return cls(
            description=payload.get("description"),
            status=payload.get("status") or "pending",
            progress=_clamp_progress(payload.get("progress", 0)),
            updated_at=payload.get("updatedAt") or payload.get("updated_at"),
            log=payload.get("log") or "",
            result=payload.get("result") or None,
        )

    @property
    def is_running(self) -> bool:
        return self.status == "running"

    @property
    def is_finished(self) -> bool:
        return self.status in ("done", "failed")


@dataclass
class PlanItem:
    """One entry of the prioritized work plan. ``id`` is None until the agent assigns one."""

    title: str = ""
    priority: str = "medium"
    status: str = "planned"
    id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: JsonDict) -> "PlanItem":
        raw_id = payload.get("id")
        return cls(
            title=str(payload.get("title") or ""),
            priority=payload.get("priority") or "medium",
            status=payload.get("status") or "planned",
            id=str(raw_id) if raw_id not in (None, "") else None,
        )

    def to_payload(self) -> JsonDict:
        payload: JsonDict = {
            "title": self.title,
            "priority": self.priority,
            "status": self.status,
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


@dataclass(frozen=True)
class FileTreeNode:
    """Immutable node of the indexed project tree."""

    name: str
    path: str
    type: str = "file"
    description: Optional[str] = None
    children: Tuple["FileTreeNode", ...] = ()

    @classmethod
    def from_payload(cls, payload: JsonDict) -> "FileTreeNode":
        node_type = payload.get("type") or "file"
        if node_type not in NODE_TYPES:
            raise ValueError(f"Unknown tree node type {node_type!r}.")
        name = str(payload.get("name") or "")
        children: Tuple[FileTreeNode, ...] = ()
        if node_type == "dir":
            children = tuple(cls.from_payload(child) for child in payload.get("children") or [])
        return cls(
            name=name,
            path=str(payload.get("path") or name),
            type=node_type,
            description=payload.get("description") or None,
            children=children,
        )

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


@dataclass(frozen=True)
class FileEntry:
    """Row of the flat file list used when no tree is available."""

    name: str
    description: Optional[str] = None
    modified: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: JsonDict) -> "FileEntry":
        return cls(
            name=str(payload.get("name") or ""),
            description=payload.get("description") or None,
            modified=payload.get("modified") or None,
        )


@dataclass(frozen=True)
class ProjectStats:
    """Task counters reported by the agent."""

    active: Optional[int] = None
    completed: Optional[int] = None
    pending: Optional[int] = None
    failed: Optional[int] = None


@dataclass(frozen=True)
class ProjectSummary:
    """Project metadata plus task statistics (``GET project``)."""

    project: JsonDict = field(default_factory=dict)
    stats: ProjectStats = field(default_factory=ProjectStats)

    @classmethod
    def from_payload(cls, payload: Optional[JsonDict]) -> "ProjectSummary":
        payload = payload or {}
        stats = payload.get("stats") or {}
        return cls(
            project=dict(payload.get("project") or {}),
            stats=ProjectStats(
                active=stats.get("active"),
                completed=stats.get("completed"),
                pending=stats.get("pending"),
                failed=stats.get("failed"),
            ),
        )

    def metadata(self, key: str, default: str = "-") -> Any:
        value = self.project.get(key)
        return default if value is None else value


__all__ = [
    "DEFAULT_NOTIFICATION_TTL_MS",
    "FileEntry",
    "FileTreeNode",
    "JsonDict",
    "NODE_TYPES",
    "NOTIFICATION_KINDS",
    "Notification",
    "PLAN_FILTERS",
    "PLAN_PRIORITIES",
    "PLAN_STATUSES",
    "PlanItem",
    "ProjectStats",
    "ProjectSummary",
    "TaskState",
]
