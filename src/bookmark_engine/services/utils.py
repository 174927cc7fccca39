"""Shared utility functions for service layer."""

# Pass as escape= to .ilike()/.like(); SQLite has no default LIKE escape character
LIKE_ESCAPE = "\\"


def escape_ilike(value: str) -> str:
    r"""
    Escape special LIKE characters for safe use in LIKE/ILIKE patterns.

    LIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character (declared via ESCAPE)

    This function escapes them so they match literally.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
