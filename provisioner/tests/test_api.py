"""
REST API tests via FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from proxmux.api import create_app


@pytest.fixture
def client(settings, context, collab, write_plan, templates):
    write_plan("basic", {"actions": {
        "curl": {"kind": "package_install", "package": "curl"},
        "profile": {"kind": "file_copy", "source": "templates/profile", "destination": "~/.profile"},
    }})
    return TestClient(create_app(settings, context, collaborators=lambda: collab))


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_list_plans(client):
    assert client.get("/plans").json()["plans"] == ["basic"]


def test_preview_is_dry_run(client, home, packages):
    r = client.get("/plans/basic")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert packages.installs == []
    assert list(home.iterdir()) == []


def test_unknown_plan_404(client):
    assert client.get("/plans/nope").status_code == 404


def test_malformed_plan_422(client, plans_dir):
    (plans_dir / "broken.json").write_text("{")
    assert client.get("/plans/broken").status_code == 422


def test_conflict_409(client, write_plan):
    write_plan("dup", {"actions": {
        "a": {"kind": "package_install", "package": "zsh"},
        "b": {"kind": "package_install", "package": "zsh"},
    }})
    r = client.post("/plans/dup/run", params={"confirm": "true"})
    assert r.status_code == 409
    assert r.json()["detail"]["conflicts"]


def test_run_without_confirm_is_aborted(client, home, packages):
    r = client.post("/plans/basic/run")
    body = r.json()

    assert r.status_code == 200
    assert body["ok"] is False
    assert body["exit_code"] == 2
    assert body["report"]["abort_reason"] == "confirmation declined"
    assert packages.installs == []
    assert not (home / ".profile").exists()


def test_run_with_confirm(client, home):
    body = client.post("/plans/basic/run", params={"confirm": "true"}).json()

    assert body["ok"] is True
    assert body["report"]["state"] == "completed"
    assert (home / ".profile").exists()


def test_second_run_while_one_is_in_progress(client, home, packages):
    lock = client.app.state.run_lock
    assert lock.acquire(blocking=False)
    try:
        r = client.post("/plans/basic/run", params={"confirm": "true"})
    finally:
        lock.release()

    assert r.status_code == 409
    assert r.json()["detail"] == "a run is already in progress"
    assert packages.installs == []
    assert not (home / ".profile").exists()

    assert client.post("/plans/basic/run", params={"confirm": "true"}).json()["ok"] is True
