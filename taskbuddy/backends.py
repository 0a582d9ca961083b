"""
Persistence service backends.

The store talks to a document store through four calls:
query-by-owner (newest first), insert, partial update by id, delete by id.

  SqliteTaskBackend - local SQLite document table
  HttpTaskBackend   - the same calls over the task server's JSON API
"""
import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import List, Optional, Dict, Any

import requests

from .errors import PersistenceError, TaskNotFound

logger = logging.getLogger(__name__)

_JSON_COLUMNS = ("tags", "attachments")
_COLUMNS = (
    "id", "title", "description", "status", "category", "due_date",
    "created_at", "updated_at", "owner_id", "tags", "attachments",
)


def make_task_id() -> str:
    """Generate a sortable unique task ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"task-{ts}-{rand}"


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode with dict-like rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class TaskBackend:
    """Interface of the persistence service collaborator."""

    def query_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        """Every task document of the owner, ordered by created_at descending."""
        raise NotImplementedError

    def insert(self, document: Dict[str, Any]) -> str:
        """Store a new document and return its assigned id."""
        raise NotImplementedError

    def update(self, task_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document. Raises TaskNotFound."""
        raise NotImplementedError

    def delete(self, task_id: str) -> None:
        """Remove a document. Deleting an unknown id is not an error."""
        raise NotImplementedError


class SqliteTaskBackend(TaskBackend):
    """SQLite-backed task documents."""

    def __init__(self, db_path: str = None):
        """Initialize backend and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskbuddy" / "tasks.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'TODO',
                    category TEXT NOT NULL DEFAULT 'WORK',
                    due_date TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    tags TEXT,         -- JSON list
                    attachments TEXT   -- JSON list
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, created_at)"
            )
            conn.commit()

    def query_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
                    (owner_id,)
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error querying tasks for {owner_id}: {e}") from e
        return [self._row_to_doc(row) for row in rows]

    def insert(self, document: Dict[str, Any]) -> str:
        task_id = make_task_id()
        values = self._encode({**document, "id": task_id})
        names = [c for c in _COLUMNS if c in values]
        try:
            with _connect(self.db_path) as conn:
                conn.execute(
                    f"INSERT INTO tasks ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
                    [values[n] for n in names],
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error inserting task: {e}") from e
        logger.info(f"Task inserted: {task_id} (owner={document.get('owner_id')})")
        return task_id

    def update(self, task_id: str, fields: Dict[str, Any]) -> None:
        values = self._encode(fields)
        names = [c for c in _COLUMNS if c in values and c != "id"]
        if not names:
            return
        try:
            with _connect(self.db_path) as conn:
                cursor = conn.execute(
                    f"UPDATE tasks SET {', '.join(f'{n} = ?' for n in names)} WHERE id = ?",
                    [values[n] for n in names] + [task_id],
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error updating task {task_id}: {e}") from e
        if cursor.rowcount == 0:
            raise TaskNotFound(task_id)

    def delete(self, task_id: str) -> None:
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error deleting task {task_id}: {e}") from e

    def get(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id (used by the task server)."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error retrieving task {task_id}: {e}") from e
        return self._row_to_doc(row) if row else None

    @staticmethod
    def _encode(document: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(document)
        for name in _JSON_COLUMNS:
            if name in values:
                values[name] = json.dumps(list(values[name] or []))
        return values

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Dict[str, Any]:
        """Convert a database row to a task document."""
        data = dict(row)
        for name in _JSON_COLUMNS:
            try:
                data[name] = json.loads(data[name]) if data.get(name) else []
            except (json.JSONDecodeError, TypeError):
                data[name] = []
        return data


class HttpTaskBackend(TaskBackend):
    """HTTP client for the task server API."""

    def __init__(self, base_url: str, api_key: str = "", timeout: Optional[float] = None,
                 session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        try:
            r = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise PersistenceError(f"{method} {path} failed: {e}") from e
        if r.status_code == 404:
            raise TaskNotFound(path.rsplit("/", 1)[-1])
        if not r.ok:
            raise PersistenceError(f"{method} {path} returned {r.status_code}: {r.text[:200]}")
        try:
            return r.json()
        except ValueError as e:
            raise PersistenceError(f"{method} {path} returned invalid JSON") from e

    def query_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/tasks", params={"owner_id": owner_id}).get("tasks", [])

    def insert(self, document: Dict[str, Any]) -> str:
        return self._request("POST", "/api/tasks", json=document)["id"]

    def update(self, task_id: str, fields: Dict[str, Any]) -> None:
        self._request("PATCH", f"/api/tasks/{task_id}", json=fields)

    def delete(self, task_id: str) -> None:
        self._request("DELETE", f"/api/tasks/{task_id}")

    def health(self) -> bool:
        """Check if the task server is reachable."""
        try:
            r = self.session.request("GET", f"{self.base_url}/health", timeout=2)
            return r.ok
        except requests.RequestException:
            return False
