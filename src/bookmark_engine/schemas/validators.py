"""
Shared validation functions for Pydantic schemas.

Labels keep their original case: they are free text entered by users or
suggested by the AI collaborator, so only whitespace is normalized.
"""
from datetime import UTC, datetime

# Matches bookmark_labels.label (String(100))
MAX_LABEL_LENGTH = 100


def validate_label_text(text: str) -> str:
    """
    Strip and validate a single label text.

    Raises:
        ValueError: If the label is empty after stripping or too long.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("Label cannot be empty")
    if len(stripped) > MAX_LABEL_LENGTH:
        raise ValueError(
            f"Label exceeds maximum length of {MAX_LABEL_LENGTH} characters "
            f"(got {len(stripped)} characters).",
        )
    return stripped


def normalize_label_texts(texts: list[str]) -> list[str]:
    """
    Normalize a list of label texts.

    Strips whitespace, silently drops empty entries, and drops duplicates while
    preserving first-seen order.

    Raises:
        ValueError: If any label is too long.
    """
    normalized: list[str] = []
    seen: set[str] = set()
    for text in texts:
        if not text or not text.strip():
            continue
        label = validate_label_text(text)
        if label in seen:
            continue
        seen.add(label)
        normalized.append(label)
    return normalized


def validate_non_blank(value: str, field_name: str) -> str:
    """Strip a required string and reject it if nothing is left."""
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} cannot be empty")
    return stripped


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)
