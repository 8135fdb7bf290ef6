import pytest
from fastapi.testclient import TestClient

from file_uploader import github_storage, upload_views
from file_uploader.github_storage import UploadSucceeded
from file_uploader.lifecycle import SIZE_LIMIT_MESSAGE, UploadController
from file_uploader.main import app
from file_uploader.sessions import SESSION_COOKIE, SessionRegistry, create_session_token, read_session_token

from conftest import FakePut, FakeResponse


@pytest.fixture
def fake_put(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "t0k3n")
    monkeypatch.setenv("GITHUB_USERNAME", "octo")
    monkeypatch.setenv("GITHUB_REPO", "drop")
    monkeypatch.setattr(upload_views, "registry", SessionRegistry())
    fake = FakePut()
    monkeypatch.setattr(github_storage.requests, "put", fake)
    return fake


@pytest.fixture
def client(fake_put):
    with TestClient(app) as c:
        yield c


def select(client, name="report.pdf", content=b"%PDF-1.7", content_type="application/pdf"):
    return client.post("/api/upload/file", files={"file": (name, content, content_type)})


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "service": "File Uploader", "github_configured": True}


def test_index_page(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "Copy &amp; Done" in res.text


def test_unknown_route_is_json_404(client):
    res = client.get("/nope")
    assert res.status_code == 404
    assert res.json() == {"detail": "Not found"}


def test_initial_state_sets_session_cookie(client):
    res = client.get("/api/upload")
    assert res.status_code == 200
    assert res.json()["status"] == "idle"
    assert res.json()["progress"] == 0
    assert read_session_token(client.cookies.get(SESSION_COOKIE))


def test_upload_then_copy_and_done(client, fake_put):
    state = select(client).json()
    assert state["status"] == "idle"
    assert state["file_name"] == "report.pdf"

    started = client.post("/api/upload/start").json()
    assert started["status"] == "uploading"

    done = client.get("/api/upload").json()
    assert done["status"] == "done"
    assert done["download_url"] == "https://example/report.pdf"
    assert [t["message"] for t in done["toasts"]] == ["File uploaded successfully"]
    assert "/contents/application/pdf/" in fake_put.calls[0]["url"]

    # toasts are delivered once
    assert client.get("/api/upload").json()["toasts"] == []

    final = client.post("/api/upload/done").json()
    assert final["clipboard"] == "https://example/report.pdf"
    assert [t["message"] for t in final["toasts"]] == ["The download link was copied"]
    assert final["status"] == "idle"
    assert final["file_name"] is None
    assert final["download_url"] is None


def test_too_large_then_retry(client, fake_put):
    fake_put.response = FakeResponse(422, {"message": "content is too large"})
    select(client, name="movie.mp4", content_type="video/mp4")
    client.post("/api/upload/start")

    state = client.get("/api/upload").json()
    assert state["status"] == "error"
    assert state["message"] == SIZE_LIMIT_MESSAGE
    assert state["toasts"] == []

    state = client.post("/api/upload/retry").json()
    assert state["status"] == "idle"
    assert state["file_name"] is None
    assert state["toasts"] == []


def test_generic_failure_notifies_and_resets(client, fake_put):
    fake_put.response = FakeResponse(401, {"message": "Bad credentials"})
    select(client)
    client.post("/api/upload/start")

    state = client.get("/api/upload").json()
    assert state["status"] == "idle"
    assert state["file_name"] is None
    assert len(state["toasts"]) == 1
    assert state["toasts"][0]["severity"] == "error"
    assert state["toasts"][0]["message"] == "Request failed with status code 401: Bad credentials"


def test_clear_selected_file(client):
    select(client)
    state = client.delete("/api/upload/file").json()
    assert state["file_name"] is None
    assert state["status"] == "idle"


def test_cancel_when_idle_is_noop(client):
    res = client.post("/api/upload/cancel")
    assert res.status_code == 200
    assert res.json()["status"] == "idle"


def test_invalid_transitions_conflict(client):
    assert client.post("/api/upload/start").status_code == 409
    assert client.post("/api/upload/done").status_code == 409
    assert client.post("/api/upload/retry").status_code == 409


def test_sessions_are_isolated(fake_put):
    with TestClient(app) as first, TestClient(app) as second:
        select(first)
        assert second.get("/api/upload").json()["file_name"] is None
        assert first.get("/api/upload").json()["file_name"] == "report.pdf"


def test_tampered_cookie_gets_new_session(client):
    client.cookies.set(SESSION_COOKIE, create_session_token("abc") + "x")
    res = client.get("/api/upload")
    assert res.status_code == 200
    assert read_session_token(res.cookies.get(SESSION_COOKIE)) not in (None, "abc")


def test_cancel_then_late_success_stays_idle(client, fake_put, monkeypatch):
    deferred = []
    run_upload = UploadController.run_upload
    # hold the background upload so the cancel lands while it is in flight
    monkeypatch.setattr(UploadController, "run_upload", lambda self, token: deferred.append((self, token)))

    select(client)
    assert client.post("/api/upload/start").json()["status"] == "uploading"

    state = client.post("/api/upload/cancel").json()
    assert state["status"] == "idle"
    assert state["file_name"] is None

    controller, token = deferred[0]
    assert token.cancelled
    run_upload(controller, token)
    controller._apply(token, UploadSucceeded("https://example/report.pdf"))

    state = client.get("/api/upload").json()
    assert state["status"] == "idle"
    assert state["download_url"] is None
    assert state["toasts"] == []
    assert fake_put.calls == []


def test_state_payload_is_consistent_while_uploading(client, monkeypatch):
    monkeypatch.setattr(UploadController, "run_upload", lambda self, token: None)
    select(client)
    client.post("/api/upload/start")
    state = client.get("/api/upload").json()
    assert state["status"] == "uploading"
    assert state["file_name"] == "report.pdf"
    assert state["progress"] == 0
