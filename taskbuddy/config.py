# TaskBuddy — configuration
# Override paths and endpoints via taskbuddy.yaml, .env or environment variables.

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .backends import TaskBackend, SqliteTaskBackend, HttpTaskBackend
from .view import DEFAULT_BREAKPOINT

CONFIG_PATH = Path(__file__).parent.parent / "taskbuddy.yaml"

_ENV_OVERRIDES = {
    "TASKBUDDY_DB": "db_path",
    "TASKBUDDY_API_URL": "api_url",
    "TASKBUDDY_API_SECRET": "api_secret",
    "TASKBUDDY_BLOB_DIR": "blob_dir",
}


@dataclass
class Config:
    """Runtime configuration for the task board."""

    # Persistence
    db_path: str = "~/.local/share/taskbuddy/tasks.db"
    api_url: Optional[str] = None      # None = local SQLite backend
    api_secret: str = ""
    request_timeout: Optional[float] = None   # None = wait indefinitely

    # Attachments
    blob_dir: str = "~/.local/share/taskbuddy/blobs"

    # View
    breakpoint: int = DEFAULT_BREAKPOINT
    default_view: str = "list"

    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in local paths."""
        self.db_path = str(Path(self.db_path).expanduser())
        self.blob_dir = str(Path(self.blob_dir).expanduser())

    def make_backend(self) -> TaskBackend:
        """Remote backend when an API URL is configured, else local SQLite."""
        if self.api_url:
            return HttpTaskBackend(self.api_url, api_key=self.api_secret, timeout=self.request_timeout)
        return SqliteTaskBackend(self.db_path)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults, then apply env overrides."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (OSError, yaml.YAMLError, TypeError) as e:
                logging.getLogger(__name__).warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()

        load_dotenv(override=False)
        for env_name, attr in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                setattr(cfg, attr, value)

        cfg.resolve_paths()
        return cfg


def setup_logging(level: str = "INFO", name: str = "taskbuddy") -> None:
    """Configure root logging once for an entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=f"%(asctime)s [{name}] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
