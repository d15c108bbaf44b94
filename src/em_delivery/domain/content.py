"""Validation for instant-delivery content.

Delivery content is shown verbatim to the buyer in the order chat, so
anything that looks like executable markup is refused outright rather than
escaped.
"""

import re

from src.em_common.errors import InvalidInputError

MAX_DELIVERY_CONTENT_LENGTH = 5000

_EXECUTABLE_MARKUP = (
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    # Event handler attributes only count inside a tag.
    re.compile(r"<[^>]*\bon[a-z]+\s*=", re.IGNORECASE),
)


def validate_delivery_content(content: str | None) -> str:
    """Return the trimmed content, or raise InvalidInputError."""
    trimmed = (content or "").strip()
    if not trimmed:
        raise InvalidInputError("Delivery content cannot be empty", code=5001)
    if len(trimmed) > MAX_DELIVERY_CONTENT_LENGTH:
        raise InvalidInputError(
            f"Delivery content must be at most {MAX_DELIVERY_CONTENT_LENGTH} characters",
            code=5002,
        )
    for pattern in _EXECUTABLE_MARKUP:
        if pattern.search(trimmed):
            raise InvalidInputError(
                "Delivery content contains potentially unsafe markup", code=5003
            )
    return trimmed
