import os
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from services import db
from services.analysis import (
    DEFAULT_PROVIDER,
    check_default_provider,
    run_analysis,
    save_result,
)
from services.forwarded import parse_forwarded
from services.logging_utils import get_logger
from services.models import EmailInput
from services.tips import DEFAULT_TIPS, GENERAL_TIPS, build_tips

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

ADMIN_USER = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASS = os.getenv("ADMIN_PASSWORD", "admin")

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_default_provider()
    db.init_db()
    yield


app = FastAPI(title="Phishing Checker", lifespan=lifespan)
templates = Jinja2Templates(directory=os.path.join(BASE_DIR, "templates"))

# The browser extension calls the API from mail client pages
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

security = HTTPBasic()


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)):
    """
    Verify Basic Auth credentials.
    Using secrets.compare_digest to prevent timing attacks.
    """
    correct_username = secrets.compare_digest(credentials.username, ADMIN_USER)
    correct_password = secrets.compare_digest(credentials.password, ADMIN_PASS)

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Identity forwarded by the auth layer in front of us, if any."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/analyze")
async def analyze_email(
    email: EmailInput,
    provider: Optional[str] = None,
    source: str = Query("form", pattern="^(form|extension)$"),
    save: bool = True,
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Classify one email submitted by the web form or the browser extension.
    The verdict is returned even when saving it to the history fails.
    """
    if not email.is_complete():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="senderEmail, subject and message are required",
        )

    provider = (provider or DEFAULT_PROVIDER).lower()
    try:
        verdict = await run_analysis(email, provider)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    response = verdict.to_dict()
    if not save:
        return response

    check_id = save_result(
        verdict,
        email,
        user_id=user_id,
        source=source,
        provider=provider,
    )
    response["saved"] = check_id is not None
    if check_id is None:
        response["warning"] = "The analysis could not be saved to your history."
    else:
        response["id"] = check_id
    return response


@app.post("/api/forwarded")
async def forwarded_email(payload: dict):
    """
    Webhook for mail forwarded to the checker address. Forwarded mail has
    no signed-in user, so records are stored without one.
    """
    try:
        email = parse_forwarded(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    logger.info(
        "processing forwarded email",
        extra={"sender": email.sender_email, "body_length": len(email.message)},
    )

    verdict = await run_analysis(email)
    check_id = save_result(
        verdict, email, source="forwarded", provider=DEFAULT_PROVIDER
    )

    return {
        "success": True,
        "analysis": verdict.to_dict(),
        "saved": check_id is not None,
    }


@app.get("/api/history")
async def history(
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Depends(get_user_id),
):
    """JSON API: the caller's most recent checks, newest first."""
    if user_id is None:
        # Anonymous callers see nothing; the all-users view is /admin/history
        return {"checks": []}
    return {"checks": db.list_checks(limit, user_id=user_id)}


@app.get("/api/tips")
async def tips(user_id: Optional[str] = Depends(get_user_id)):
    if user_id is None:
        return {
            "tips": [t.model_dump() for t in DEFAULT_TIPS],
            "stats": {"total": 0, "unsafe": 0, "safe": 0},
            "general": [t.model_dump() for t in GENERAL_TIPS],
        }

    checks = db.list_checks(limit=100, user_id=user_id)
    return {
        "tips": [t.model_dump() for t in build_tips(checks)],
        "stats": db.get_stats(user_id=user_id),
        "general": [t.model_dump() for t in GENERAL_TIPS],
    }


# ---------- Admin HTML Dashboard ----------

@app.get("/admin/history", response_class=HTMLResponse)
async def admin_history(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    username: str = Depends(get_current_username),
):
    """
    HTML dashboard: recent analyses in a table.
    Protected by Basic Auth.
    """
    checks = db.list_checks(limit)
    stats = db.get_stats()
    return templates.TemplateResponse(
        request,
        "history.html",
        {"checks": checks, "stats": stats, "user": username},
    )


@app.get("/admin/history/{check_id}")
async def admin_check_detail(
    check_id: int,
    username: str = Depends(get_current_username),
):
    check = db.get_check_by_id(check_id)
    if not check:
        logger.warning("check not found", extra={"check_id": check_id})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Check not found")
    return check
