"""
View coordinator: lanes, collapsed sections and the responsive layout.

All view state lives in one ViewState object owned by the coordinator and
handed to whatever renders it. Grouping never touches the task collection;
it builds new Lane values from it.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .schema import Task, TaskStatus, STATUS_ORDER

logger = logging.getLogger(__name__)

DEFAULT_BREAKPOINT = 768

LANE_TITLES: Dict[TaskStatus, str] = {
    TaskStatus.TODO: "Todo",
    TaskStatus.IN_PROGRESS: "In-Progress",
    TaskStatus.COMPLETED: "Completed",
}


class ViewMode(Enum):
    BOARD = "board"
    LIST = "list"

    @classmethod
    def from_str(cls, value: str) -> "ViewMode":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            return cls.LIST


@dataclass
class ViewState:
    """Everything the task view needs to remember between renders."""
    mode: ViewMode = ViewMode.LIST
    viewport_width: Optional[int] = None    # unknown until the first resize
    breakpoint: int = DEFAULT_BREAKPOINT
    expanded: Dict[TaskStatus, bool] = field(
        default_factory=lambda: {status: True for status in STATUS_ORDER}
    )
    active_menu: Optional[str] = None       # task id with an open "more" menu
    status_menu: Optional[str] = None       # task id with an open status picker
    pending_delete: Optional[str] = None    # task id awaiting delete confirmation


@dataclass(frozen=True)
class Lane:
    """Tasks sharing one status, rendered as a column or a collapsible section."""
    status: TaskStatus
    title: str
    tasks: Tuple[Task, ...]
    expanded: bool = True

    @property
    def count(self) -> int:
        return len(self.tasks)

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    @property
    def visible_tasks(self) -> Tuple[Task, ...]:
        return self.tasks if self.expanded else ()


class ViewCoordinator:
    """Derives lanes from the filtered tasks and tracks the layout state."""

    def __init__(self, state: Optional[ViewState] = None, breakpoint: Optional[int] = None):
        self.state = state or ViewState()
        if breakpoint is not None:
            self.state.breakpoint = breakpoint

    @property
    def is_compact(self) -> bool:
        width = self.state.viewport_width
        return width is not None and width < self.state.breakpoint

    def effective_mode(self) -> ViewMode:
        """Board whenever the viewport is below the breakpoint, else the chosen mode."""
        return ViewMode.BOARD if self.is_compact else self.state.mode

    def set_mode(self, mode: ViewMode) -> ViewMode:
        self.state.mode = mode
        return self.effective_mode()

    def set_viewport_width(self, width: int) -> ViewMode:
        was_compact = self.is_compact
        self.state.viewport_width = width
        if self.is_compact != was_compact:
            logger.debug(f"Viewport {width}px: layout now {self.effective_mode().value}")
        return self.effective_mode()

    # ── Lanes ──

    def is_expanded(self, status: TaskStatus) -> bool:
        return self.state.expanded.get(status, True)

    def toggle_lane(self, status: TaskStatus) -> bool:
        """Flip a lane between expanded and collapsed. Returns the new flag."""
        self.state.expanded[status] = not self.is_expanded(status)
        return self.state.expanded[status]

    def group_by_status(self, tasks: Iterable[Task]) -> List[Lane]:
        """Partition tasks into the three lanes in fixed order; empty lanes are kept."""
        members: Dict[TaskStatus, List[Task]] = {status: [] for status in STATUS_ORDER}
        for task in tasks:
            members[task.status].append(task)
        return [
            Lane(
                status=status,
                title=LANE_TITLES[status],
                tasks=tuple(members[status]),
                expanded=self.is_expanded(status),
            )
            for status in STATUS_ORDER
        ]

    # ── Menus ──

    def toggle_menu(self, task_id: str) -> Optional[str]:
        """Open the menu of a task, or close it if it is already open."""
        self.state.active_menu = None if self.state.active_menu == task_id else task_id
        return self.state.active_menu

    def toggle_status_menu(self, task_id: str) -> Optional[str]:
        self.state.status_menu = None if self.state.status_menu == task_id else task_id
        return self.state.status_menu

    def close_menu(self) -> None:
        self.state.active_menu = None
        self.state.status_menu = None

    # ── Delete confirmation ──

    def request_delete(self, task_id: str) -> None:
        """Ask for confirmation before deleting; the "more" menu closes."""
        self.state.pending_delete = task_id
        self.state.active_menu = None

    def cancel_delete(self) -> None:
        self.state.pending_delete = None

    def take_pending_delete(self) -> Optional[str]:
        """Return the task id awaiting confirmation and clear it."""
        task_id, self.state.pending_delete = self.state.pending_delete, None
        return task_id
