import os
import sqlite3
from typing import Optional

from dotenv import load_dotenv

from services import classifier, db
from services.logging_utils import get_logger
from services.models import EmailInput, Verdict
from services.remote_classifier import classify_remote

load_dotenv()

PROVIDERS = ("heuristic", "remote")
DEFAULT_PROVIDER = os.getenv("CLASSIFIER_PROVIDER", "heuristic").lower()

logger = get_logger(__name__)


def check_default_provider() -> str:
    """Fail at startup rather than on the first request when CLASSIFIER_PROVIDER is wrong."""
    if DEFAULT_PROVIDER not in PROVIDERS:
        raise RuntimeError(
            f"CLASSIFIER_PROVIDER must be one of {', '.join(PROVIDERS)}, got {DEFAULT_PROVIDER!r}"
        )
    return DEFAULT_PROVIDER


async def run_analysis(email: EmailInput, provider: Optional[str] = None) -> Verdict:
    """
    Classify an email with the requested provider.

    "heuristic" is the local rule engine, "remote" the hosted LLM. Both take
    the same fields and return the same Verdict shape.
    """
    provider = (provider or DEFAULT_PROVIDER).lower()
    if provider not in PROVIDERS:
        raise ValueError(f"unknown provider: {provider}")

    if provider == "remote":
        return await classify_remote(email)

    assessment = classifier.assess(email)
    logger.info(
        "heuristic verdict",
        extra={
            "risk_score": assessment.risk_score,
            "issues": assessment.issues,
            "is_safe": assessment.verdict.is_safe,
        },
    )
    return assessment.verdict


def save_result(
    verdict: Verdict,
    email: EmailInput,
    user_id: Optional[str] = None,
    source: str = "form",
    provider: str = "heuristic",
) -> Optional[int]:
    """Persist a verdict; returns the record id, or None if the store failed."""
    try:
        return db.log_check(
            verdict, email, user_id=user_id, source=source, provider=provider
        )
    except sqlite3.Error:
        logger.exception(
            "failed to save analysis",
            extra={"source": source, "user_id": user_id},
        )
        return None
