"""
Task store: the authoritative in-memory task collection.

Every successful mutation is followed by a full reload from the persistence
service (reload-after-mutation). There is no optimistic patching and no
version check, so the last write wins. A failed mutation leaves the
collection exactly as it was; a failed load empties it.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .backends import TaskBackend
from .errors import TaskValidationError
from .schema import Task, utc_now, validate_payload

logger = logging.getLogger(__name__)


class TaskStore:
    """Owns the task collection of one user and keeps it in sync with the backend."""

    def __init__(self, backend: TaskBackend, owner_id: Optional[str] = None):
        self.backend = backend
        self.owner_id = owner_id
        self.loading = True
        self._tasks: Tuple[Task, ...] = ()
        self._generation = 0
        self._subscribers: List[Callable[[Tuple[Task, ...]], None]] = []

    @property
    def tasks(self) -> Tuple[Task, ...]:
        """Read-only snapshot of the current collection (newest first)."""
        return self._tasks

    def get(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def subscribe(self, callback: Callable[[Tuple[Task, ...]], None]) -> None:
        """Register a callback that receives the snapshot after every load."""
        self._subscribers.append(callback)

    def _publish(self) -> None:
        for callback in self._subscribers:
            try:
                callback(self._tasks)
            except Exception:
                logger.exception("Error in task subscriber")

    # ── Reads ──

    def reset(self, owner_id: Optional[str]) -> None:
        """
        Switch owner without querying: drop the collection and any load in flight.

        Used where no event loop is running; the next load fills it again.
        """
        self._generation += 1
        self.owner_id = owner_id
        self._tasks = ()
        self.loading = bool(owner_id)
        self._publish()

    async def set_owner(self, owner_id: Optional[str]) -> None:
        """Switch to another user (or none) and reload."""
        self.owner_id = owner_id
        await self.load()

    async def load(self, owner_id: Optional[str] = None) -> None:
        """
        Replace the collection with every task of the owner, newest first.

        Never raises: a failure is logged and leaves the collection empty.
        A result that arrives after another load or owner switch has started
        is discarded.
        """
        if owner_id is not None:
            self.owner_id = owner_id
        self._generation += 1
        generation, owner = self._generation, self.owner_id
        if not owner:
            self._tasks = ()
            self.loading = False
            self._publish()
            return

        self.loading = True
        try:
            docs = await asyncio.to_thread(self.backend.query_by_owner, owner)
            tasks = tuple(Task.from_dict(d) for d in docs)
        except Exception:
            logger.exception(f"Error fetching tasks for {owner}")
            tasks = ()
        finally:
            stale = generation != self._generation
            if not stale:
                self.loading = False
        if stale:
            logger.debug(f"Discarding stale task load for {owner}")
            return
        self._tasks = tasks
        self._publish()

    # ── Mutations ──

    async def create(self, payload: Mapping[str, Any]) -> str:
        """Insert a new task and reload. Returns the assigned id."""
        try:
            document = validate_payload(payload)
            task_id = await asyncio.to_thread(self.backend.insert, document)
        except Exception as e:
            logger.error(f"Error adding task: {e}")
            raise
        await self.load()
        return task_id

    async def update(self, task_id: str, fields: Mapping[str, Any]) -> None:
        """Merge fields into a stored task, refresh updated_at, and reload."""
        try:
            changes: Dict[str, Any] = validate_payload(fields, partial=True)
            if "attachments" in changes:
                self._check_append_only(task_id, changes["attachments"])
            changes["updated_at"] = self._next_updated_at(task_id)
            await asyncio.to_thread(self.backend.update, task_id, changes)
        except Exception as e:
            logger.error(f"Error updating task {task_id}: {e}")
            raise
        await self.load()

    async def remove(self, task_id: str) -> None:
        """Delete a task and reload."""
        try:
            await asyncio.to_thread(self.backend.delete, task_id)
        except Exception as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            raise
        await self.load()

    def _check_append_only(self, task_id: str, attachments: List[str]) -> None:
        current = self.get(task_id)
        if current is None:
            return
        stored = list(current.attachments)
        if attachments[:len(stored)] != stored:
            raise TaskValidationError(
                f"Attachments are append-only: task {task_id} has {len(stored)} stored")

    def _next_updated_at(self, task_id: str) -> str:
        # Never move updated_at backwards, even if the local clock does
        now = utc_now()
        current = self.get(task_id)
        if current and current.updated_at > now:
            return current.updated_at
        return now
