"""
Input validation utilities.
"""

import re
from typing import Optional, Tuple

DEFAULT_TITLE = "New Conversation"
TITLE_ELLIPSIS = "…"


def validate_password(password: str) -> Tuple[bool, str]:
    """
    Validate password strength.

    Requirements:
    - At least 8 characters
    - At most 128 characters
    - Contains at least one letter
    - Contains at least one number

    Args:
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, "Password is required"

    if len(password) < 8:
        return False, "Password must be at least 8 characters"

    if len(password) > 128:
        return False, "Password must be less than 128 characters"

    if not re.search(r'[a-zA-Z]', password):
        return False, "Password must contain at least one letter"

    if not re.search(r'\d', password):
        return False, "Password must contain at least one number"

    return True, ""


def validate_message_content(
    content: Optional[str],
    has_file: bool = False,
    max_length: int = 10000,
) -> Tuple[bool, str]:
    """
    Validate the text of an outgoing message.

    An attached file stands in for missing text, but the length limit
    applies either way.

    Args:
        content: Message text (may be None)
        has_file: Whether a file accompanies the message
        max_length: Maximum allowed characters

    Returns:
        Tuple of (is_valid, error_message)
    """
    content = content or ""

    if len(content) > max_length:
        return False, f"Message content is too long (maximum {max_length:,} characters)"

    if not content.strip() and not has_file:
        return False, "Message content is required"

    return True, ""


def derive_title(content: Optional[str], max_length: int = 50) -> str:
    """
    Build a conversation title from the first message.

    Args:
        content: First message text
        max_length: Characters kept before the ellipsis

    Returns:
        The trimmed text, cut to max_length with "…" appended when longer,
        or "New Conversation" when there is no text.
    """
    trimmed = (content or "").strip()
    if not trimmed:
        return DEFAULT_TITLE
    if len(trimmed) > max_length:
        return trimmed[:max_length] + TITLE_ELLIPSIS
    return trimmed

