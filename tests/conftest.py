import pytest

from services import db
from services.models import EmailInput


@pytest.fixture
def history_db(tmp_path, monkeypatch):
    """Point the history store at a fresh SQLite file."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "history.db"))
    db.init_db()
    return db


@pytest.fixture
def phishing_email():
    return EmailInput(
        senderEmail="support@paypaI.com",
        subject="Urgent: Verify Your Account",
        message="Dear customer, please verify your account immediately.",
        links="",
        attachments="",
    )


@pytest.fixture
def safe_email():
    return EmailInput(
        senderEmail="jane@acme.com",
        subject="Meeting notes",
        message="Hi Jane, attached are the notes from today.",
        links="",
        attachments="",
    )
