"""
Heuristic phishing scoring.

Five independent checks (sender, subject, body, links, attachments) each
contribute a capped score and at most one issue label. The summed risk
score decides the verdict; the first issue found is the one explained.
"""
import re
from typing import List, Optional
from urllib.parse import urlparse

from services.models import Assessment, CheckResult, EmailInput, Verdict

SUSPICIOUS_WORDS = (
    "urgent",
    "immediate",
    "verify",
    "suspend",
    "expire",
    "click here",
    "act now",
    "limited time",
    "congratulations",
    "winner",
    "free",
    "prize",
    "claim",
    "tax refund",
    "suspended",
    "locked",
)

# Look-alike domains seen impersonating banks, providers and brands
SUSPICIOUS_DOMAINS = (
    "bankk.com",
    "paypaI.com",
    "amazon.co",
    "microsft.com",
    "gooogle.com",
    "appIe.com",
    "faceboook.com",
    "instagramm.com",
)

COMMON_DOMAINS = (
    "gmail",
    "yahoo",
    "outlook",
    "hotmail",
    "amazon",
    "paypal",
    "microsoft",
    "apple",
)

DANGEROUS_EXTENSIONS = (".exe", ".bat", ".scr", ".com", ".pif", ".vbs", ".js")

GENERIC_GREETINGS = ("dear customer", "dear user", "dear sir/madam", "hello user")

RANDOM_LOCAL_PART = re.compile(r"[0-9]{4,}|[a-z]{10,}", re.IGNORECASE)

GRAMMAR_PATTERNS = (
    re.compile(r"[a-z]\.[A-Z]"),  # no space after period
    re.compile(r"\s{2,}"),
    re.compile(r"[a-z],[A-Z]"),  # no space after comma
)

SUSPICIOUS_LINK_PATTERNS = (
    re.compile(r"(?:^|[/.@])(?:bit\.ly|tinyurl\.com|t\.co|goo\.gl|ow\.ly|is\.gd)(?![a-z0-9])"),
    re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}"),
)

# second-level label of the link host, e.g. "xk3jd8s0qpl" in xk3jd8s0qpl.net
RANDOM_DOMAIN_LABEL = re.compile(r"[a-z0-9]{10,}")

SAFE_THRESHOLD = 3
MIN_CONFIDENCE = 60
MAX_CONFIDENCE = 95

SAFE_EXPLANATION = "This email appears safe with no major red flags detected."
UNSAFE_EXPLANATION = (
    "This email shows warning signs including {issue}. "
    "Be cautious with links and attachments."
)


def _count_suspicious_words(text: str) -> int:
    lowered = text.lower()
    return sum(1 for word in SUSPICIOUS_WORDS if word in lowered)


def has_suspicious_spelling(email: str) -> bool:
    """True when the address contains a near-miss of a well-known provider name."""
    lowered = email.lower()
    for domain in COMMON_DOMAINS:
        variants = (domain[:-1], domain + "1", domain.replace("o", "0", 1))
        if any(variant in lowered for variant in variants):
            return True
    return False


def has_random_characters(email: str) -> bool:
    local_part = email.split("@")[0]
    return RANDOM_LOCAL_PART.search(local_part) is not None


def has_poor_grammar(message: str) -> bool:
    return any(pattern.search(message) for pattern in GRAMMAR_PATTERNS)


def has_generic_greeting(message: str) -> bool:
    lowered = message.lower()
    return any(greeting in lowered for greeting in GENERIC_GREETINGS)


def _link_host(link: str) -> Optional[str]:
    try:
        parsed = urlparse(link if "://" in link else f"http://{link}")
        return parsed.hostname
    except ValueError:
        return None


def has_random_domain(link: str) -> bool:
    host = _link_host(link)
    if not host:
        return False
    labels = host.split(".")
    return len(labels) >= 2 and RANDOM_DOMAIN_LABEL.fullmatch(labels[-2]) is not None


def is_suspicious_link(link: str) -> bool:
    lowered = link.lower()
    if any(pattern.search(lowered) for pattern in SUSPICIOUS_LINK_PATTERNS):
        return True
    return has_random_domain(lowered)


def check_sender(sender_email: str) -> CheckResult:
    lowered = sender_email.lower()

    for domain in SUSPICIOUS_DOMAINS:
        if domain.lower() in lowered:
            return CheckResult(score=4, issue="suspicious domain")

    if has_suspicious_spelling(sender_email):
        return CheckResult(score=3, issue="suspicious spelling")

    if has_random_characters(sender_email):
        return CheckResult(score=2, issue="unusual sender format")

    return CheckResult()


def check_subject(subject: str) -> CheckResult:
    count = _count_suspicious_words(subject)
    if count > 0:
        return CheckResult(score=min(count, 3), issue="urgent or suspicious language")
    return CheckResult()


def check_message(message: str) -> CheckResult:
    score = 0
    issues = []

    if _count_suspicious_words(message) > 2:
        score += 2
        issues.append("multiple urgent phrases")

    if has_poor_grammar(message):
        score += 1
        issues.append("poor grammar")

    if has_generic_greeting(message):
        score += 1
        issues.append("generic greeting")

    return CheckResult(score=min(score, 3), issue=", ".join(issues) or None)


def check_links(links: str) -> CheckResult:
    if not links:
        return CheckResult()

    for link in links.split("\n"):
        link = link.strip()
        if link and is_suspicious_link(link):
            # One bad link is enough; the rest are not inspected.
            return CheckResult(score=2, issue="suspicious or shortened links")

    return CheckResult()


def check_attachments(attachments: str) -> CheckResult:
    if not attachments:
        return CheckResult()

    for attachment in attachments.split(","):
        name = attachment.strip().lower()
        if name.endswith(DANGEROUS_EXTENSIONS):
            return CheckResult(score=4, issue="dangerous file type")

    return CheckResult()


def confidence_for(risk_score: int) -> int:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, 100 - risk_score * 10))


def explain(is_safe: bool, issues: List[str]) -> str:
    if is_safe:
        return SAFE_EXPLANATION
    primary = issues[0] if issues else "suspicious content"
    return UNSAFE_EXPLANATION.format(issue=primary)


def assess(email: EmailInput) -> Assessment:
    """Run every check and keep the full breakdown alongside the verdict."""
    results = (
        check_sender(email.sender_email),
        check_subject(email.subject),
        check_message(email.message),
        check_links(email.links),
        check_attachments(email.attachments),
    )

    risk_score = sum(r.score for r in results)
    issues = [r.issue for r in results if r.issue]
    is_safe = risk_score < SAFE_THRESHOLD

    verdict = Verdict(
        is_safe=is_safe,
        explanation=explain(is_safe, issues),
        confidence=confidence_for(risk_score),
    )
    return Assessment(risk_score=risk_score, issues=issues, verdict=verdict)


def analyze(email: EmailInput) -> Verdict:
    return assess(email).verdict
