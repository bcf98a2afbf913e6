"""
Utility modules package.
"""

from utils.validators import derive_title, validate_message_content, validate_password

__all__ = [
    "derive_title",
    "validate_message_content",
    "validate_password",
]
