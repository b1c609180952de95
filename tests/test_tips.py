from services.tips import DEFAULT_TIPS, GENERAL_TIPS, build_tips, detect_patterns


def check(is_safe, subject="Hello", message="Just checking in.", links=""):
    return {"is_safe": is_safe, "subject": subject, "message": message, "links": links}


def categories(tips):
    return [t.category for t in tips]


def test_no_history_gives_default_tips():
    assert build_tips([]) == DEFAULT_TIPS


def test_general_tips():
    assert len(GENERAL_TIPS) == 5
    assert GENERAL_TIPS[0].category == "Check the Sender"


def test_high_risk_with_urgency_pattern():
    checks = [
        check(False, subject="URGENT action required"),
        check(False, message="Your mailbox will expire today"),
        check(True),
    ]
    tips = build_tips(checks)

    assert categories(tips) == ["High Risk Alert", "Urgency Pattern"]
    assert tips[0].severity == "danger"
    assert "2 suspicious emails out of 3 checks" in tips[0].tip


def test_detect_patterns():
    unsafe = [
        check(False, message="Please verify your password", links="https://bit.ly/x"),
        check(False, subject="You are a winner", message="Claim your money", links="http://1.2.3.4"),
        check(False, message="Confirm your bank payment"),
    ]
    assert detect_patterns(unsafe) == ["personal_info", "suspicious_links", "financial"]


def test_links_pattern_needs_majority():
    unsafe = [check(False, links="https://bit.ly/x"), check(False)]
    assert "suspicious_links" not in detect_patterns(unsafe)


def test_good_awareness():
    tips = build_tips([check(True) for _ in range(6)])
    assert categories(tips) == ["Good Security Awareness"]


def test_falls_back_to_defaults_when_nothing_stands_out():
    tips = build_tips([check(True) for _ in range(3)])
    assert tips == DEFAULT_TIPS


def test_single_pattern_without_high_risk():
    checks = [check(False, message="please update your account"), check(True), check(True)]
    assert categories(build_tips(checks)) == ["Personal Information"]
