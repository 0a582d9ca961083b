"""Shared fixtures for task board tests."""

import asyncio
import time

import pytest

from taskbuddy.backends import SqliteTaskBackend
from taskbuddy.schema import Task, TaskStatus, TaskCategory
from taskbuddy.store import TaskStore

OWNER = "user-1"


def run(coro):
    """Drive one coroutine to completion."""
    return asyncio.run(coro)


def make_doc(title, status="TODO", category="WORK", due_date="2024-01-10",
             created_at="2024-01-01T00:00:00.000Z", owner_id=OWNER, **extra):
    doc = {
        "title": title,
        "description": "",
        "status": status,
        "category": category,
        "due_date": due_date,
        "created_at": created_at,
        "updated_at": created_at,
        "owner_id": owner_id,
        "tags": [],
        "attachments": [],
    }
    doc.update(extra)
    return doc


def make_task(task_id, title, status=TaskStatus.TODO, category=TaskCategory.WORK,
              due_date="2024-01-10", created_at="2024-01-01T00:00:00.000Z"):
    return Task(
        id=task_id,
        title=title,
        status=status,
        category=category,
        due_date=due_date,
        created_at=created_at,
        updated_at=created_at,
        owner_id=OWNER,
    )


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "tasks.db")


@pytest.fixture
def backend(db_path):
    return SqliteTaskBackend(db_path)


class SlowBackend(SqliteTaskBackend):
    """SQLite backend whose owner query takes a while to answer."""

    delay = 0.2

    def query_by_owner(self, owner_id):
        time.sleep(self.delay)
        return super().query_by_owner(owner_id)


@pytest.fixture
def slow_backend(db_path):
    return SlowBackend(db_path)


@pytest.fixture
def store(backend):
    return TaskStore(backend, owner_id=OWNER)


@pytest.fixture
def seeded_store(backend):
    """Store with three tasks loaded, created a minute apart (t3 newest)."""
    ids = {}
    for i, (title, status) in enumerate([
        ("Buy milk", "TODO"),
        ("Write report", "IN_PROGRESS"),
        ("Call mom", "COMPLETED"),
    ], start=1):
        ids[title] = backend.insert(make_doc(title, status=status,
                                             created_at=f"2024-01-01T00:0{i}:00.000Z"))
    store = TaskStore(backend, owner_id=OWNER)
    run(store.load())
    store.ids = ids
    return store
