import re

from studymate_chat.guard.redaction import (
    FAILED_PLACEHOLDER,
    RedactionEngine,
    RedactionRule,
    combine_statuses,
)
from studymate_chat.types import RedactionStatus


class _BrokenPattern:
    def sub(self, repl: str, text: str) -> str:
        raise RuntimeError("regex engine exploded")


def test_email_and_phone_are_masked() -> None:
    result = RedactionEngine().redact("mail me at anna.k@example.com or +998 90 123 45 67")

    assert result.status is RedactionStatus.REDACTED
    assert "anna.k@example.com" not in result.value
    assert "[email]" in result.value
    assert "[phone]" in result.value


def test_clean_text_is_skipped() -> None:
    result = RedactionEngine().redact("How do I start the focus timer?")

    assert result.status is RedactionStatus.SKIPPED
    assert result.value == "How do I start the focus timer?"


def test_iso_dates_are_not_treated_as_phone_numbers() -> None:
    result = RedactionEngine().redact("who was 1st on 2025-03-10")

    assert result.status is RedactionStatus.SKIPPED


def test_failing_rule_returns_placeholder_instead_of_raising() -> None:
    engine = RedactionEngine([RedactionRule("broken", _BrokenPattern())])  # type: ignore[arg-type]

    result = engine.redact("secret stuff")

    assert result.status is RedactionStatus.FAILED
    assert result.value == FAILED_PLACEHOLDER


def test_combined_status_is_most_severe() -> None:
    assert combine_statuses(RedactionStatus.SKIPPED, RedactionStatus.REDACTED) is RedactionStatus.REDACTED
    assert combine_statuses(RedactionStatus.FAILED, RedactionStatus.SKIPPED) is RedactionStatus.FAILED
    assert combine_statuses(RedactionStatus.SKIPPED, RedactionStatus.SKIPPED) is RedactionStatus.SKIPPED
    assert combine_statuses() is RedactionStatus.SKIPPED


def test_custom_rule_label() -> None:
    engine = RedactionEngine([RedactionRule("uid", re.compile(r"user-\d+"))])

    assert engine.redact("ping user-42").value == "ping [uid]"
