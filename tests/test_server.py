"""
Tests for the task server and the HTTP backend that talks to it.
"""
import logging

import pytest

from conftest import OWNER, make_doc, run
from taskbuddy.backends import HttpTaskBackend
from taskbuddy.config import Config
from taskbuddy.errors import PersistenceError, TaskNotFound
from taskbuddy.server import create_app
from taskbuddy.store import TaskStore

BASE_URL = "http://tasks.test"


class FlaskResponse:
    """Just enough of requests.Response for HttpTaskBackend."""

    def __init__(self, resp):
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400
        self.text = resp.get_data(as_text=True)
        self._json = resp.get_json(silent=True)

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class FlaskSession:
    """Routes session.request(...) calls into a Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        resp = self.client.open(url[len(BASE_URL):], method=method, headers=headers or {},
                                query_string=params, json=json)
        return FlaskResponse(resp)


@pytest.fixture
def app(db_path):
    return create_app(Config(db_path=db_path))


@pytest.fixture
def client(app):
    return app.test_client()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Routes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_health(client, db_path):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "db": db_path}


def test_create_and_list(client):
    resp = client.post("/api/tasks", json=make_doc("Buy milk"))
    assert resp.status_code == 201
    task_id = resp.get_json()["id"]

    resp = client.get("/api/tasks", query_string={"owner_id": OWNER})
    body = resp.get_json()
    assert body["count"] == 1
    assert body["tasks"][0]["id"] == task_id


def test_list_requires_owner(client):
    assert client.get("/api/tasks").status_code == 400


def test_create_invalid(client):
    resp = client.post("/api/tasks", json=make_doc("x", category="ALL"))
    assert resp.status_code == 400
    assert "category" in resp.get_json()["error"]


def test_patch_and_delete(client):
    task_id = client.post("/api/tasks", json=make_doc("x")).get_json()["id"]
    assert client.patch(f"/api/tasks/{task_id}", json={"status": "COMPLETED"}).status_code == 200
    assert client.patch("/api/tasks/task-missing", json={"title": "y"}).status_code == 404
    assert client.patch(f"/api/tasks/{task_id}", json={"status": "DONE"}).status_code == 400

    resp = client.delete(f"/api/tasks/{task_id}")
    assert resp.get_json() == {"status": "deleted", "id": task_id}
    assert client.get("/api/tasks", query_string={"owner_id": OWNER}).get_json()["count"] == 0


def test_patch_cannot_move_task_to_another_owner(client):
    task_id = client.post("/api/tasks", json=make_doc("x")).get_json()["id"]
    resp = client.patch(f"/api/tasks/{task_id}",
                        json={"owner_id": "intruder", "created_at": "1999-01-01T00:00:00.000Z"})
    assert resp.status_code == 400
    assert "Immutable" in resp.get_json()["error"]

    task = client.get("/api/tasks", query_string={"owner_id": OWNER}).get_json()["tasks"][0]
    assert task["owner_id"] == OWNER
    assert task["created_at"] == "2024-01-01T00:00:00.000Z"
    assert client.get("/api/tasks", query_string={"owner_id": "intruder"}).get_json()["count"] == 0


def test_create_drops_repeated_tags(client):
    client.post("/api/tasks", json=make_doc("x", tags=["a", "b", "a"]))
    task = client.get("/api/tasks", query_string={"owner_id": OWNER}).get_json()["tasks"][0]
    assert task["tags"] == ["a", "b"]


class TestApiKey:

    @pytest.fixture
    def secured(self, db_path):
        return create_app(Config(db_path=db_path, api_secret="s3cret")).test_client()

    def test_missing_key(self, secured):
        assert secured.get("/api/tasks?owner_id=u").status_code == 401

    def test_wrong_key(self, secured):
        resp = secured.get("/api/tasks?owner_id=u", headers={"X-API-Key": "nope"})
        assert resp.status_code == 403

    def test_right_key(self, secured):
        resp = secured.get("/api/tasks?owner_id=u", headers={"X-API-Key": "s3cret"})
        assert resp.status_code == 200

    def test_health_is_open(self, secured):
        assert secured.get("/health").status_code == 200

    def test_open_api_is_logged(self, db_path, caplog):
        with caplog.at_level(logging.WARNING, logger="taskbuddy.server"):
            create_app(Config(db_path=db_path))
        assert "api_secret is not set" in caplog.text

    def test_secured_api_is_not_flagged(self, db_path, caplog):
        with caplog.at_level(logging.WARNING, logger="taskbuddy.server"):
            create_app(Config(db_path=db_path, api_secret="s3cret"))
        assert "api_secret is not set" not in caplog.text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HttpTaskBackend
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.fixture
def http_backend(client):
    return HttpTaskBackend(BASE_URL, session=FlaskSession(client))


def test_http_backend_round_trip(http_backend):
    task_id = http_backend.insert(make_doc("Buy milk", tags=["home"]))
    http_backend.update(task_id, {"status": "IN_PROGRESS"})
    docs = http_backend.query_by_owner(OWNER)
    assert docs[0]["status"] == "IN_PROGRESS"
    assert docs[0]["tags"] == ["home"]
    http_backend.delete(task_id)
    assert http_backend.query_by_owner(OWNER) == []


def test_http_backend_not_found(http_backend):
    with pytest.raises(TaskNotFound):
        http_backend.update("task-missing", {"title": "x"})


def test_http_backend_rejected_payload(http_backend):
    with pytest.raises(PersistenceError, match="400"):
        http_backend.insert({"title": "no owner"})


def test_http_backend_sends_api_key(db_path):
    client = create_app(Config(db_path=db_path, api_secret="k")).test_client()
    good = HttpTaskBackend(BASE_URL, api_key="k", session=FlaskSession(client))
    bad = HttpTaskBackend(BASE_URL, api_key="wrong", session=FlaskSession(client))
    assert good.query_by_owner(OWNER) == []
    with pytest.raises(PersistenceError, match="403"):
        bad.query_by_owner(OWNER)


def test_http_backend_health(http_backend):
    assert http_backend.health()


def test_store_over_http(http_backend):
    store = TaskStore(http_backend, owner_id=OWNER)
    task_id = run(store.create(make_doc("Remote task")))
    run(store.update(task_id, {"title": "Remote task v2"}))
    assert [t.title for t in store.tasks] == ["Remote task v2"]
    run(store.remove(task_id))
    assert store.tasks == ()
