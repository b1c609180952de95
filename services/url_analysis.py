import re
from typing import Iterable, List

from bs4 import BeautifulSoup

# Basic URL regex – good enough for most mail content
URL_REGEX = re.compile(
    r"""(?i)\b((?:https?://|www\.)[^\s<>"]+)"""
)


def extract_urls(text: str) -> List[str]:
    if not text:
        return []
    urls = URL_REGEX.findall(text)
    # Normalize a bit: strip trailing punctuation
    cleaned = [u.rstrip(').,;\'"') for u in urls]
    # De-duplicate while preserving order
    seen = set()
    result = []
    for u in cleaned:
        if u not in seen:
            seen.add(u)
            result.append(u)
    return result


def html_to_text(markup: str) -> str:
    """Visible text of an HTML-only body, with link targets kept next to their anchors."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for anchor in soup.find_all("a", href=True):
        anchor.append(f" {anchor['href']} ")
    return soup.get_text(separator=" ", strip=True)


def join_links(urls: Iterable[str]) -> str:
    """Format URLs the way the analysis form expects them: one per line."""
    return "\n".join(u for u in urls if u)
