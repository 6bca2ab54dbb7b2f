# portal/core/errors.py
"""
Typed failures raised below the HTTP layer.

Every error carries a stable machine ``code``. None of them hold user-facing
text: translation into messages happens in the auth coordinator only.
"""
from __future__ import annotations

from typing import Any


class PortalError(Exception):
    """Base class for all account/auth failures."""

    code = "PORTAL_ERROR"

    def __init__(self, detail: str = "", code: str | None = None):
        super().__init__(detail or self.code)
        if code is not None:
            self.code = code
        self.detail = detail


class InputValidationError(PortalError):
    """Bad or missing input (empty email, malformed email, weak password...)."""

    code = "INVALID_INPUT"

    def __init__(self, code: str, detail: str = "", check: Any = None):
        super().__init__(detail, code=code)
        self.check = check  # PasswordCheckResult when code == PASSWORD_WEAK


class ConflictError(PortalError):
    code = "EMAIL_EXISTS"


class AuthenticationError(PortalError):
    code = "AUTH_INVALID_CREDENTIALS"


class SamePasswordError(PortalError):
    code = "PASSWORD_UNCHANGED"


class PasswordMismatchError(PortalError):
    code = "OLD_PASSWORD_MISMATCH"


class InternalConsistencyError(PortalError):
    """An update expected to touch exactly one row touched a different number."""

    code = "INTERNAL_CONSISTENCY"


class CorruptRecordError(PortalError):
    """A stored hash record does not have the ``hex(key) + hex(salt)`` shape."""

    code = "CORRUPT_RECORD"
