"""
Status transitions from drag gestures, status menus and the completion checkbox.

Any status may move to any other. A drop that lands on its own lane and
index is a no-op; every other drop becomes exactly one status update. The
drop index is not persisted: the store always reads tasks back newest first.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .errors import TaskBuddyError
from .schema import TaskStatus
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanePosition:
    lane: str       # lane id: a TaskStatus value (members are accepted too)
    index: int


@dataclass(frozen=True)
class DragGesture:
    """Result of a finished drag. destination is None when the drop was cancelled."""
    task_id: str
    source: LanePosition
    destination: Optional[LanePosition] = None


def lane_status(lane: Union[str, TaskStatus]) -> TaskStatus:
    """Strict lane id lookup; an unknown lane is a programming error."""
    if isinstance(lane, TaskStatus):
        return lane
    try:
        return TaskStatus(lane)
    except ValueError:
        raise ValueError(f"Unknown lane: {lane!r}") from None


def resolve_drop(gesture: DragGesture) -> Optional[TaskStatus]:
    """Target status of a drop, or None when nothing should be written."""
    dest = gesture.destination
    if dest is None:
        return None
    target = lane_status(dest.lane)
    if target is lane_status(gesture.source.lane) and dest.index == gesture.source.index:
        return None
    return target


def toggled_status(status: TaskStatus) -> TaskStatus:
    """Checkbox shortcut: completed tasks reopen as TODO, everything else completes."""
    return TaskStatus.TODO if status is TaskStatus.COMPLETED else TaskStatus.COMPLETED


class DragTransitionHandler:
    """Turns status gestures into store updates."""

    def __init__(self, store: TaskStore):
        self.store = store

    async def handle_drop(self, gesture: DragGesture) -> bool:
        """Issue at most one status update for a drop. Returns True if one was issued."""
        target = resolve_drop(gesture)
        if target is None:
            logger.debug(f"Drop of {gesture.task_id} ignored (no-op)")
            return False
        await self.store.update(gesture.task_id, {"status": target.value})
        return True

    async def select_status(self, task_id: str, status: TaskStatus) -> None:
        """Explicit status menu choice."""
        await self.store.update(task_id, {"status": status.value})

    async def toggle_complete(self, task_id: str) -> TaskStatus:
        """Flip a task between TODO and COMPLETED. Returns the status written."""
        task = self.store.get(task_id)
        if task is None:
            raise TaskBuddyError(f"Task not loaded: {task_id}")
        target = toggled_status(task.status)
        await self.store.update(task_id, {"status": target.value})
        return target
