import sqlite3

import pytest
from fastapi.testclient import TestClient

from api import main
from api.main import app
from services import analysis, db, remote_classifier
from services.tips import DEFAULT_TIPS

PHISHING = {
    "senderEmail": "support@paypaI.com",
    "subject": "Urgent: Verify Your Account",
    "message": "Dear customer, please verify your account immediately.",
    "links": "",
    "attachments": "",
}

SAFE = {
    "senderEmail": "jane@acme.com",
    "subject": "Meeting notes",
    "message": "Hi Jane, attached are the notes from today.",
}


@pytest.fixture
def client(history_db, monkeypatch):
    monkeypatch.setattr(main, "ADMIN_USER", "admin")
    monkeypatch.setattr(main, "ADMIN_PASS", "admin")
    with TestClient(app) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_analyze_phishing(client):
    resp = client.post("/api/analyze", json=PHISHING)
    assert resp.status_code == 200

    body = resp.json()
    assert body["isSafe"] is False
    assert body["confidence"] == 60
    assert "suspicious domain" in body["explanation"]
    assert body["saved"] is True
    assert db.get_check_by_id(body["id"])["subject"] == PHISHING["subject"]


def test_analyze_safe_without_saving(client):
    resp = client.post("/api/analyze", params={"save": "false"}, json=SAFE)
    assert resp.json() == {
        "isSafe": True,
        "explanation": "This email appears safe with no major red flags detected.",
        "confidence": 95,
    }
    assert db.list_checks() == []


def test_analyze_requires_core_fields(client):
    resp = client.post("/api/analyze", json={"senderEmail": "a@b.com", "subject": "x"})
    assert resp.status_code == 400


def test_analyze_unknown_provider(client):
    resp = client.post("/api/analyze", params={"provider": "magic"}, json=SAFE)
    assert resp.status_code == 400


def test_analyze_remote_unavailable_fails_closed(client, monkeypatch):
    monkeypatch.setattr(remote_classifier, "LLM_API_KEY", None)

    body = client.post("/api/analyze", params={"provider": "remote"}, json=SAFE).json()
    assert body["isSafe"] is False
    assert body["confidence"] == 60
    assert db.get_check_by_id(body["id"])["provider"] == "remote"


def test_analyze_keeps_verdict_when_save_fails(client, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(db, "log_check", broken)

    body = client.post("/api/analyze", json=PHISHING).json()
    assert body["isSafe"] is False
    assert body["saved"] is False
    assert "warning" in body


def test_history_is_newest_first_and_user_scoped(client):
    client.post("/api/analyze", json=SAFE, headers={"X-User-Id": "alice"})
    client.post("/api/analyze", json=PHISHING, headers={"X-User-Id": "alice"})
    client.post(
        "/api/analyze",
        params={"source": "extension"},
        json=SAFE,
        headers={"X-User-Id": "bob"},
    )

    checks = client.get("/api/history", headers={"X-User-Id": "alice"}).json()["checks"]
    assert [c["sender_email"] for c in checks] == ["support@paypaI.com", "jane@acme.com"]

    latest = client.get(
        "/api/history", params={"limit": 1}, headers={"X-User-Id": "bob"}
    ).json()["checks"]
    assert len(latest) == 1
    assert latest[0]["user_id"] == "bob"
    assert latest[0]["source"] == "extension"


def test_history_is_empty_for_anonymous_callers(client):
    client.post("/api/analyze", json=PHISHING, headers={"X-User-Id": "alice"})
    client.post("/api/analyze", json=SAFE)

    assert client.get("/api/history").json() == {"checks": []}


def test_forwarded_webhook(client):
    resp = client.post(
        "/api/forwarded",
        json={
            "from": "alerts@bankk.com",
            "subject": "Your account is locked",
            "text": "Unlock now: https://bit.ly/unlock",
        },
    )
    body = resp.json()
    assert body["success"] is True
    assert body["saved"] is True
    assert body["analysis"]["isSafe"] is False

    record = db.list_checks(limit=1)[0]
    assert record["source"] == "forwarded"
    assert record["user_id"] is None
    assert record["links"] == "https://bit.ly/unlock"


def test_tips(client):
    for _ in range(2):
        client.post("/api/analyze", json=PHISHING, headers={"X-User-Id": "alice"})

    body = client.get("/api/tips", headers={"X-User-Id": "alice"}).json()
    categories = [t["category"] for t in body["tips"]]
    assert "High Risk Alert" in categories
    assert body["stats"] == {"total": 2, "unsafe": 2, "safe": 0}
    assert len(body["general"]) == 5


def test_admin_requires_auth(client):
    assert client.get("/admin/history").status_code == 401
    assert client.get("/admin/history", auth=("admin", "wrong")).status_code == 401


def test_admin_dashboard(client):
    check_id = client.post("/api/analyze", json=PHISHING).json()["id"]

    resp = client.get("/admin/history", auth=("admin", "admin"))
    assert resp.status_code == 200
    assert "support@paypaI.com" in resp.text
    assert "Possibly Phishing" in resp.text

    detail = client.get(f"/admin/history/{check_id}", auth=("admin", "admin"))
    assert detail.json()["id"] == check_id
    assert client.get("/admin/history/9999", auth=("admin", "admin")).status_code == 404


def test_tips_for_anonymous_callers_are_generic(client):
    for _ in range(2):
        client.post("/api/analyze", json=PHISHING, headers={"X-User-Id": "alice"})

    body = client.get("/api/tips").json()
    assert body["tips"] == [t.model_dump() for t in DEFAULT_TIPS]
    assert body["stats"] == {"total": 0, "unsafe": 0, "safe": 0}
    assert len(body["general"]) == 5


def test_forwarded_webhook_with_sender_object(client):
    resp = client.post(
        "/api/forwarded",
        json={
            "from": {"email": "alerts@bankk.com", "name": "Bank"},
            "subject": "Your account is locked",
            "text": 42,
        },
    )
    assert resp.status_code == 200
    assert resp.json()["analysis"]["isSafe"] is False
    assert db.list_checks(limit=1)[0]["sender_email"] == "alerts@bankk.com"


def test_startup_rejects_unknown_provider(history_db, monkeypatch):
    monkeypatch.setattr(analysis, "DEFAULT_PROVIDER", "magic")
    with pytest.raises(RuntimeError):
        with TestClient(app):
            pass
