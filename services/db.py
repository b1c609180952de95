import os
import sqlite3
from datetime import datetime, timezone
from threading import Lock
from typing import List, Optional

from dotenv import load_dotenv

from services.models import EmailInput, Verdict

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DB_PATH = os.getenv("HISTORY_DB_PATH", os.path.join(BASE_DIR, "data", "history.db"))

_db_lock = Lock()

_COLUMNS = (
    "id, user_id, source, provider, sender_email, subject, message, links, "
    "attachments, is_safe, explanation, confidence, created_at"
)


def _connect() -> sqlite3.Connection:
    return sqlite3.connect(DB_PATH)


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "source": row[2],
        "provider": row[3],
        "sender_email": row[4],
        "subject": row[5],
        "message": row[6],
        "links": row[7],
        "attachments": row[8],
        "is_safe": bool(row[9]),
        "explanation": row[10],
        "confidence": row[11],
        "created_at": row[12],
    }


def init_db():
    """Create the SQLite database and table if they don't exist."""
    db_dir = os.path.dirname(DB_PATH)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    with _db_lock:
        conn = _connect()
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS analysis_checks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT,
                source TEXT NOT NULL DEFAULT 'form',
                provider TEXT NOT NULL DEFAULT 'heuristic',
                sender_email TEXT,
                subject TEXT,
                message TEXT,
                links TEXT,
                attachments TEXT,
                is_safe INTEGER NOT NULL,
                explanation TEXT,
                confidence INTEGER,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.commit()
        conn.close()


def log_check(
    verdict: Verdict,
    email: EmailInput,
    user_id: Optional[str] = None,
    source: str = "form",
    provider: str = "heuristic",
) -> int:
    """Append one analysis to the history and return its row id."""
    created_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    with _db_lock:
        conn = _connect()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO analysis_checks
                    (user_id, source, provider, sender_email, subject, message,
                     links, attachments, is_safe, explanation, confidence, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    source,
                    provider,
                    email.sender_email,
                    email.subject,
                    email.message,
                    email.links,
                    email.attachments,
                    int(verdict.is_safe),
                    verdict.explanation,
                    verdict.confidence,
                    created_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()


def list_checks(limit: int = 10, user_id: Optional[str] = None) -> List[dict]:
    """Return the most recent checks, newest first."""
    query = f"SELECT {_COLUMNS} FROM analysis_checks"
    params = []
    if user_id is not None:
        query += " WHERE user_id = ?"
        params.append(user_id)
    query += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)

    with _db_lock:
        conn = _connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

    return [_row_to_dict(row) for row in rows]


def get_check_by_id(check_id: int) -> Optional[dict]:
    with _db_lock:
        conn = _connect()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM analysis_checks WHERE id = ?",
                (check_id,),
            ).fetchone()
        finally:
            conn.close()

    if not row:
        return None
    return _row_to_dict(row)


def get_stats(user_id: Optional[str] = None) -> dict:
    """
    Simple counters for the dashboard and the tips panel:
    - total checks
    - flagged as unsafe
    - judged safe
    """
    query = "SELECT COUNT(*), SUM(CASE WHEN is_safe = 0 THEN 1 ELSE 0 END) FROM analysis_checks"
    params = []
    if user_id is not None:
        query += " WHERE user_id = ?"
        params.append(user_id)

    with _db_lock:
        conn = _connect()
        try:
            row = conn.execute(query, params).fetchone()
        finally:
            conn.close()

    total = row[0] or 0
    unsafe = row[1] or 0
    return {
        "total": total,
        "unsafe": unsafe,
        "safe": total - unsafe,
    }
