"""
Errors raised by the permission engine.

A failed grant lookup surfaces as GrantStoreError, never as an
AuthorizationError or an empty id list.
"""


class PermissionEngineError(Exception):
    """Base class for permission engine errors."""


class AuthorizationError(PermissionEngineError):
    """Raised by require_permission and friends when a rule denies access."""

    default_reason = "You do not have permission to perform this action"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class GrantStoreError(PermissionEngineError):
    """Raised when resource grants cannot be read or written."""
