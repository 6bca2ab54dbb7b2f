# portal/schemas/password.py
"""
Pydantic schemas describing a password policy check.
"""
from typing import List, Optional

from pydantic import BaseModel

__all__ = ["PasswordViolationOut", "PasswordCheckResult"]


class PasswordViolationOut(BaseModel):
    code: int  # PasswordViolation value
    message: Optional[str] = None  # Present only when the checker explains failures


class PasswordCheckResult(BaseModel):
    input: str
    isValid: bool
    violations: List[PasswordViolationOut] = []

    def messages(self) -> List[str]:
        return [v.message for v in self.violations if v.message]
