# salescrm/errors.py
"""
Exception types and backend error message mapping.

Read paths log and return empty data; write paths return (success, message)
tuples. These exceptions are raised where a caller must not continue, e.g.
a non-admin reaching an admin-only mutation.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CrmError(Exception):
    """Base exception for sales CRM errors"""
    pass


class ValidationError(CrmError):
    """Input rejected before any write was attempted"""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = missing or []


class PermissionDenied(CrmError):
    """Caller's role does not allow the operation"""
    pass


# ===== RPC MESSAGE MAPPING =====

def humanize_rpc_error(message: Optional[str], action: str = "update user profiles") -> str:
    """
    Turn a backend error message into copy for the UI.

    Args:
        message: Raw error text from the database function
        action: Phrase used in the admin-only message

    Returns:
        Friendly message; unknown messages pass through unchanged
    """
    text = (message or '').strip()
    if not text:
        return "An unexpected error occurred."

    if 'must have' in text:
        return f"Validation failed: {text}. Please ensure all required fields are set for this role."

    if 'Only admin' in text:
        return f"You must be an admin to {action}."

    return text


__all__ = [
    'CrmError',
    'ValidationError',
    'PermissionDenied',
    'humanize_rpc_error',
]
