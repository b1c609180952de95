import json
import os
from typing import Optional

import httpx
from dotenv import load_dotenv

from services.logging_utils import get_logger
from services.models import EmailInput, Verdict

load_dotenv()

# OpenAI-compatible chat completions endpoint
LLM_API = os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
LLM_API_KEY = os.getenv("LLM_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30"))

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are a cybersecurity expert. Always respond with valid JSON only."

PHISHING_PROMPT = """
You are a cybersecurity expert analyzing emails for phishing indicators.

Analyze this email and determine if it's safe or potentially phishing:

Sender: {sender}
Subject: {subject}
Message: {message}
{links_section}{attachments_section}
Respond with a JSON object containing:
- isSafe: boolean (true if safe, false if potentially phishing)
- explanation: string (brief explanation of your assessment)
- confidence: number (confidence level from 60-95)

Look for these phishing indicators:
- Suspicious sender domains or misspellings
- Urgent/threatening language
- Suspicious links or URL shorteners
- Generic greetings
- Poor grammar/spelling
- Requests for personal information
- Dangerous file attachments

Be conservative - err on the side of caution for user safety.
"""

UNAVAILABLE_EXPLANATION = (
    "Automated analysis was unavailable. Please review the email manually for safety."
)


def unavailable_verdict() -> Verdict:
    """Fail closed: never report unanalyzed mail as safe."""
    return Verdict(is_safe=False, explanation=UNAVAILABLE_EXPLANATION, confidence=60)


def build_prompt(email: EmailInput) -> str:
    links_section = f"Links: {email.links}\n" if email.links else ""
    attachments_section = (
        f"Attachments: {email.attachments}\n" if email.attachments else ""
    )
    return PHISHING_PROMPT.format(
        sender=email.sender_email,
        subject=email.subject,
        message=email.message,
        links_section=links_section,
        attachments_section=attachments_section,
    )


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.strip("`")
        if content.lower().startswith("json"):
            content = content[4:]
    return content.strip()


def parse_verdict(content: str) -> Verdict:
    """
    Parse and normalize the model's JSON answer.

    Raises ValueError when the content is not a JSON object.
    """
    result = json.loads(_strip_code_fence(content))
    if not isinstance(result, dict):
        raise ValueError("model response is not a JSON object")

    is_safe = result.get("isSafe")
    if isinstance(is_safe, str):
        is_safe = is_safe.strip().lower() == "true"
    is_safe = bool(is_safe)

    try:
        confidence = int(round(float(result.get("confidence", 60))))
    except (TypeError, ValueError):
        confidence = 60
    # Clamp to the same range the heuristic engine uses
    confidence = max(60, min(confidence, 95))

    explanation = str(result.get("explanation") or "").strip()
    if not explanation:
        explanation = "Model did not provide an explanation."

    return Verdict(is_safe=is_safe, explanation=explanation, confidence=confidence)


async def classify_remote(
    email: EmailInput, client: Optional[httpx.AsyncClient] = None
) -> Verdict:
    """
    Ask the hosted LLM for a verdict on the same fields the heuristic
    engine sees. Any failure yields the conservative unavailable verdict.
    """
    if not LLM_API_KEY:
        logger.warning("remote classifier not configured, LLM_API_KEY missing")
        return unavailable_verdict()

    payload = {
        "model": LLM_MODEL,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(email)},
        ],
        "temperature": 0.1,
        "max_tokens": 300,
    }
    headers = {"Authorization": f"Bearer {LLM_API_KEY}"}

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=LLM_TIMEOUT)

    try:
        resp = await client.post(LLM_API, json=payload, headers=headers)
        resp.raise_for_status()
        content = str(resp.json()["choices"][0]["message"]["content"] or "")
    except httpx.HTTPError as exc:
        logger.error("remote classifier request failed", extra={"error": repr(exc)})
        return unavailable_verdict()
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        logger.error("unexpected remote classifier response", extra={"error": repr(exc)})
        return unavailable_verdict()
    finally:
        if owns_client:
            await client.aclose()

    try:
        verdict = parse_verdict(content)
    except ValueError:
        logger.warning("model returned invalid JSON", extra={"content": content[:200]})
        return unavailable_verdict()

    logger.info(
        "remote verdict",
        extra={"is_safe": verdict.is_safe, "confidence": verdict.confidence},
    )
    return verdict
