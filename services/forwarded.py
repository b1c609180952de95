from typing import List

from services.models import EmailInput
from services.url_analysis import extract_urls, html_to_text, join_links


def _as_text(value) -> str:
    # Some providers send `from` as {"email": ..., "name": ...}
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return str(value.get("email") or value.get("address") or "")
    return str(value)


def _attachment_names(raw) -> List[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        return [name.strip() for name in raw.split(",") if name.strip()]
    if not isinstance(raw, (list, tuple)):
        raw = [raw]

    names = []
    for item in raw:
        if isinstance(item, dict):
            name = item.get("filename") or item.get("name") or ""
        else:
            name = str(item)
        if name.strip():
            names.append(name.strip())
    return names


def parse_forwarded(payload: dict) -> EmailInput:
    """
    Turn an inbound-mail webhook body into the analysis fields.

    Expects at least `from`, `subject` and `text`; `html` is used when the
    plain-text part is missing. Links are pulled out of the body since
    forwarded mail does not list them separately.
    """
    payload = payload or {}
    body = _as_text(payload.get("text")) or html_to_text(_as_text(payload.get("html")))

    return EmailInput(
        sender_email=_as_text(payload.get("from")),
        subject=_as_text(payload.get("subject")),
        message=body,
        links=join_links(extract_urls(body)),
        attachments=", ".join(_attachment_names(payload.get("attachments"))),
    )
