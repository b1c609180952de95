from typing import Iterable, List

from services.models import SafetyTip

GENERAL_TIPS = [
    SafetyTip(
        category="Check the Sender",
        tip="Look for misspellings in email addresses and verify sender through official channels.",
    ),
    SafetyTip(
        category="Don't Rush",
        tip="Phishers use urgent language to make you act quickly. Take time to verify.",
    ),
    SafetyTip(
        category="Verify Links",
        tip="Hover over links to see where they really go. When in doubt, visit the official website directly.",
    ),
    SafetyTip(
        category="Be Careful with Attachments",
        tip="Don't download unexpected attachments, especially .exe, .bat, or .scr files.",
    ),
    SafetyTip(
        category="Trust Your Instincts",
        tip="If something feels off about an email, it probably is. When in doubt, don't interact with it.",
    ),
]

DEFAULT_TIPS = [
    SafetyTip(
        category="Getting Started",
        tip="Check more emails to get personalized safety tips based on your patterns.",
    ),
    SafetyTip(
        category="General Safety",
        tip="Always verify sender identity through official channels when in doubt.",
    ),
]

URGENT_KEYWORDS = ("urgent", "immediate", "expire", "suspend", "act now")
PERSONAL_INFO_KEYWORDS = ("verify", "confirm", "update", "personal", "account", "password")
FINANCIAL_KEYWORDS = ("bank", "payment", "refund", "money", "prize", "winner")

# pattern -> share of unsafe checks that must show it
PATTERN_THRESHOLDS = {
    "urgency": 0.4,
    "personal_info": 0.3,
    "suspicious_links": 0.5,
    "financial": 0.3,
}

PATTERN_TIPS = {
    "urgency": SafetyTip(
        category="Urgency Pattern",
        tip="You often receive emails with urgent language. Remember: legitimate companies rarely demand immediate action via email.",
        severity="warning",
    ),
    "personal_info": SafetyTip(
        category="Personal Information",
        tip="Many suspicious emails you've checked request personal information. Never share sensitive details via email replies.",
        severity="warning",
    ),
    "suspicious_links": SafetyTip(
        category="Link Safety",
        tip="You frequently check emails with links. Always hover over links to see the real destination before clicking.",
        severity="info",
    ),
    "financial": SafetyTip(
        category="Financial Scams",
        tip="You've seen several financial-themed phishing attempts. Always verify financial communications through official channels.",
        severity="warning",
    ),
}


def _mentions(text: str, keywords: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def detect_patterns(unsafe_checks: List[dict]) -> List[str]:
    """Recurring traits among the checks that were flagged as unsafe."""
    if not unsafe_checks:
        return []

    matches = {
        "urgency": lambda c: _mentions(c.get("subject"), URGENT_KEYWORDS)
        or _mentions(c.get("message"), URGENT_KEYWORDS),
        "personal_info": lambda c: _mentions(c.get("message"), PERSONAL_INFO_KEYWORDS),
        "suspicious_links": lambda c: bool((c.get("links") or "").strip()),
        "financial": lambda c: _mentions(c.get("subject"), FINANCIAL_KEYWORDS)
        or _mentions(c.get("message"), FINANCIAL_KEYWORDS),
    }

    total = len(unsafe_checks)
    patterns = []
    for name, matcher in matches.items():
        hits = sum(1 for check in unsafe_checks if matcher(check))
        if hits > total * PATTERN_THRESHOLDS[name]:
            patterns.append(name)
    return patterns


def build_tips(checks: List[dict]) -> List[SafetyTip]:
    """
    Personalized advice from a user's analysis history.

    `checks` are history records as returned by db.list_checks. Falls back
    to DEFAULT_TIPS when there is nothing specific to say.
    """
    if not checks:
        return list(DEFAULT_TIPS)

    total = len(checks)
    unsafe = [c for c in checks if not c.get("is_safe")]
    risk_level = len(unsafe) / total

    tips = []
    if risk_level > 0.5:
        tips.append(
            SafetyTip(
                category="High Risk Alert",
                tip=(
                    f"You've encountered {len(unsafe)} suspicious emails out of {total} checks. "
                    "Consider being extra cautious with all incoming emails."
                ),
                severity="danger",
            )
        )

    for pattern in detect_patterns(unsafe):
        tips.append(PATTERN_TIPS[pattern])

    if risk_level < 0.2 and total > 5:
        tips.append(
            SafetyTip(
                category="Good Security Awareness",
                tip="Great job! You're doing well at identifying safe emails. Keep using your security awareness.",
            )
        )

    return tips or list(DEFAULT_TIPS)
