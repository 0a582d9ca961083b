#!/usr/bin/env python3
"""
TaskBuddy Task Server
---------------------
Serves the task persistence API as JSON, backed by the SQLite backend.
HttpTaskBackend is the client side of this API.

Usage:
    taskbuddy-server --port 3000 --db ~/.local/share/taskbuddy/tasks.db

API:
    GET    /api/tasks?owner_id=U  → { tasks, count }   newest first
    POST   /api/tasks             → { id }              201
    PATCH  /api/tasks/<id>        → { id }              404 if missing
    DELETE /api/tasks/<id>        → { status, id }
    GET    /health                → { status, db }

The /api routes require an X-API-Key header when api_secret is configured.
"""
import argparse
import hmac
import logging
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from .backends import SqliteTaskBackend
from .config import Config, setup_logging
from .errors import PersistenceError, TaskNotFound, TaskValidationError
from .schema import validate_payload

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None) -> Flask:
    """Build the Flask app around one SQLite backend."""
    cfg = config or Config.load()
    backend = SqliteTaskBackend(cfg.db_path)

    app = Flask(__name__)
    app.config["TASKBUDDY"] = cfg
    app.json.sort_keys = False
    if not cfg.api_secret:
        logger.warning("api_secret is not set: /api routes accept requests without a key")

    def require_api_key(f):
        """Decorator: reject requests without a valid X-API-Key header."""
        @wraps(f)
        def decorated(*args, **kwargs):
            if not cfg.api_secret:
                return f(*args, **kwargs)
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, cfg.api_secret):
                code = 401 if not provided else 403
                return jsonify({"error": "Unauthorized"}), code
            return f(*args, **kwargs)
        return decorated

    @app.errorhandler(PersistenceError)
    def persistence_error(e):
        app.logger.warning(f"persistence error: {e}")
        return jsonify({"error": str(e)}), 500

    @app.route("/api/tasks", methods=["GET"])
    @require_api_key
    def api_list_tasks():
        owner_id = request.args.get("owner_id", "").strip()
        if not owner_id:
            return jsonify({"error": "owner_id is required"}), 400
        tasks = backend.query_by_owner(owner_id)
        return jsonify({"tasks": tasks, "count": len(tasks)})

    @app.route("/api/tasks", methods=["POST"])
    @require_api_key
    def api_create_task():
        data = request.get_json(force=True, silent=True) or {}
        try:
            document = validate_payload(data)
        except TaskValidationError as e:
            return jsonify({"error": str(e)}), 400
        task_id = backend.insert(document)
        return jsonify({"id": task_id}), 201

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    @require_api_key
    def api_update_task(task_id):
        data = request.get_json(force=True, silent=True) or {}
        try:
            fields = validate_payload(data, partial=True)
        except TaskValidationError as e:
            return jsonify({"error": str(e)}), 400
        try:
            backend.update(task_id, fields)
        except TaskNotFound:
            return jsonify({"error": "Task not found"}), 404
        return jsonify({"id": task_id})

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_task(task_id):
        backend.delete(task_id)
        return jsonify({"status": "deleted", "id": task_id})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": backend.db_path})

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="TaskBuddy task server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to tasks.db (overrides TASKBUDDY_DB env var)")
    parser.add_argument("--config", help="Path to taskbuddy.yaml")
    args = parser.parse_args(argv)

    cfg = Config.load(args.config)
    if args.db:
        cfg.db_path = args.db
        cfg.resolve_paths()
    setup_logging(cfg.log_level, "task-server")

    app = create_app(cfg)
    logger.info(f"Serving tasks from {cfg.db_path} on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
