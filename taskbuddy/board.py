"""
Task board controller.

Wires the identity session, the task store, the filter selection, the view
coordinator and the status handler together, the way the application shell
uses them. Mutations flow into the store; views are derived from its
snapshot on demand.
"""
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from .drag import DragGesture, DragTransitionHandler
from .errors import NotSignedIn
from .filters import FilterSelection
from .identity import AuthSession, User
from .schema import Task, TaskDraft, TaskStatus, FilterCategory, append_attachments, new_task_payload
from .store import TaskStore
from .view import Lane, ViewCoordinator, ViewMode, ViewState

logger = logging.getLogger(__name__)


class TaskBoard:
    """One signed-in user's board."""

    def __init__(self, store: TaskStore, view: Optional[ViewCoordinator] = None,
                 auth: Optional[AuthSession] = None):
        self.store = store
        self.view = view or ViewCoordinator()
        self.auth = auth or AuthSession()
        self.transitions = DragTransitionHandler(store)
        self.filters = FilterSelection()
        self._pending: Optional[asyncio.Task] = None
        self.auth.subscribe(self._on_auth_changed)

    # ── Identity ──

    def _on_auth_changed(self, user: Optional[User]) -> None:
        logger.debug(f"Auth changed: user={user.id if user else None}")
        owner_id = user.id if user else None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        # Provider callbacks are synchronous; schedule the reload when a loop runs
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.store.reset(owner_id)
            return
        self._pending = loop.create_task(self.store.set_owner(owner_id))

    async def sign_in(self, user: User) -> None:
        """Report a completed sign-in and wait for the user's tasks to load."""
        self.auth.signed_in(user)
        await self._settle()

    async def sign_out(self) -> None:
        self.auth.signed_out()
        await self._settle()

    async def _settle(self) -> None:
        if self._pending is not None:
            pending, self._pending = self._pending, None
            await pending
        elif self.store.owner_id != self.auth.user_id or self.store.loading:
            await self.store.set_owner(self.auth.user_id)

    def _require_user(self) -> User:
        if self.auth.user is None:
            raise NotSignedIn("Sign in to manage tasks")
        return self.auth.user

    # ── Filters ──

    def search(self, text: str) -> None:
        self.filters = replace(self.filters, search=text)

    def filter_category(self, category: FilterCategory) -> None:
        self.filters = replace(self.filters, category=category)

    def filter_dates(self, start: str = "", end: str = "") -> None:
        self.filters = replace(self.filters, date_range=(start, end))

    def clear_filters(self) -> None:
        self.filters = FilterSelection.cleared()

    # ── Views ──

    @property
    def loading(self) -> bool:
        return self.auth.loading or self.store.loading

    def visible_tasks(self) -> List[Task]:
        return self.filters.apply(self.store.tasks)

    def lanes(self) -> List[Lane]:
        return self.view.group_by_status(self.visible_tasks())

    # ── Mutations ──

    async def add_task(self, draft: TaskDraft) -> str:
        user = self._require_user()
        return await self.store.create(new_task_payload(draft, user.id))

    async def edit_task(self, task_id: str, draft: TaskDraft) -> None:
        """Save a form draft. Attachments stored since the draft was opened are kept."""
        self._require_user()
        fields = draft.to_fields()
        current = self.store.get(task_id)
        if current is not None:
            added = [ref for ref in draft.attachments if ref not in current.attachments]
            fields["attachments"] = list(append_attachments(current.attachments, added))
        await self.store.update(task_id, fields)

    async def delete_task(self, task_id: str) -> None:
        self._require_user()
        await self.store.remove(task_id)

    def request_delete(self, task_id: str) -> None:
        self.view.request_delete(task_id)

    def cancel_delete(self) -> None:
        self.view.cancel_delete()

    async def confirm_delete(self) -> Optional[str]:
        """Delete the task awaiting confirmation. Returns its id, or None if nothing was pending."""
        task_id = self.view.take_pending_delete()
        if task_id is None:
            return None
        await self.delete_task(task_id)
        return task_id

    async def change_status(self, task_id: str, status: TaskStatus) -> None:
        self.view.close_menu()
        await self.transitions.select_status(task_id, status)

    async def toggle_complete(self, task_id: str) -> TaskStatus:
        return await self.transitions.toggle_complete(task_id)

    async def drop(self, gesture: DragGesture) -> bool:
        return await self.transitions.handle_drop(gesture)


def build_board(config) -> TaskBoard:
    """Board wired from a Config: backend, breakpoint and initial view mode."""
    state = ViewState(mode=ViewMode.from_str(config.default_view), breakpoint=config.breakpoint)
    return TaskBoard(TaskStore(config.make_backend()), view=ViewCoordinator(state))
