"""
Blob storage boundary and attachment flow.

Blob stores take raw bytes and hand back a stable reference string. The
core never looks at the bytes; it only appends references to a task.
"""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Iterable, List, Tuple

from .errors import BlobStoreError, TaskBuddyError
from .schema import append_attachments
from .store import TaskStore

logger = logging.getLogger(__name__)


class BlobStore:
    """Interface of the blob storage collaborator."""

    def put(self, owner_id: str, filename: str, data: bytes) -> str:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Stores blobs under <root>/users/<owner>/attachments/<uuid>."""

    def __init__(self, root: str):
        self.root = Path(root).expanduser()

    def put(self, owner_id: str, filename: str, data: bytes) -> str:
        path = self.root / "users" / owner_id / "attachments" / uuid.uuid4().hex
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BlobStoreError(f"Upload of {filename} failed: {e}") from e
        logger.info(f"Stored attachment {filename} -> {path.name}")
        return path.resolve().as_uri()


async def attach_files(
    store: TaskStore,
    blobs: BlobStore,
    task_id: str,
    files: Iterable[Tuple[str, bytes]],
) -> List[str]:
    """
    Upload files and append their references to a task in one update.

    Any upload failure raises before the task is touched.
    """
    task = store.get(task_id)
    if task is None:
        raise TaskBuddyError(f"Task not loaded: {task_id}")

    refs = []
    for filename, data in files:
        refs.append(await asyncio.to_thread(blobs.put, task.owner_id, filename, data))
    if not refs:
        return []

    await store.update(task_id, {"attachments": list(append_attachments(task.attachments, refs))})
    return refs
