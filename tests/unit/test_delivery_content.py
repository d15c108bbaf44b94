"""Tests for instant-delivery content validation."""

import pytest

from src.em_common.errors import InvalidInputError
from src.em_delivery.domain.content import MAX_DELIVERY_CONTENT_LENGTH, validate_delivery_content


def test_trims_and_returns() -> None:
    assert validate_delivery_content("  CODE-1234-ABCD \n") == "CODE-1234-ABCD"


@pytest.mark.parametrize("content", [None, "", "   \n\t"])
def test_empty_rejected(content: str | None) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        validate_delivery_content(content)
    assert exc_info.value.code == 5001


def test_length_limit_applies_after_trim() -> None:
    at_limit = "x" * MAX_DELIVERY_CONTENT_LENGTH
    assert validate_delivery_content(f"  {at_limit}  ") == at_limit

    with pytest.raises(InvalidInputError) as exc_info:
        validate_delivery_content(at_limit + "x")
    assert exc_info.value.code == 5002


@pytest.mark.parametrize(
    "content",
    [
        "<script>alert(1)</script>",
        "< SCRIPT src=x>",
        "click javascript:alert(1)",
        "JavaScript : void(0)",
        '<img src=x onerror="steal()">',
        "<body onload = run()>",
    ],
)
def test_executable_markup_rejected(content: str) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        validate_delivery_content(content)
    assert exc_info.value.code == 5003


@pytest.mark.parametrize(
    "content",
    [
        "Login: user@example.com / Password: hunter2",
        "Serial: 4A7F-22C1 (one activation)",
        "https://example.com/download?token=abc",
        "online=yes",
        "onetime = 1234 (redeem at checkout)",
    ],
)
def test_ordinary_text_accepted(content: str) -> None:
    assert validate_delivery_content(content) == content
