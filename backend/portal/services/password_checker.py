# portal/services/password_checker.py
"""
Password strength policy.

Every base rule is evaluated against the whole candidate so the caller gets
the complete list of violations in one pass. The confirmation rule only runs
once all base rules pass.

Usage:
    checker = PasswordChecker(minimum_length=8, explain_failures=True)
    checker.check_password("aW5+test").isValid              # True
    checker.check_password("aW6+test", "aW7+test").violations  # [CONFIRM_NOT_SAME]
"""
from enum import IntEnum
from typing import Optional

from portal.schemas.password import PasswordCheckResult, PasswordViolationOut

SPECIAL_CHARACTERS = "/!\"#$%&'()*+,-.:;<=>?@[]^_`{|}~"


class PasswordViolation(IntEnum):
    NO_LOWER_CHAR = 1
    NO_UPPER_CHAR = 2
    NO_DIGIT_CHAR = 3
    NO_SYMBOL_CHAR = 4
    TOO_SHORT = 5
    CONFIRM_NOT_SAME = 6


class PasswordChecker:
    def __init__(self, minimum_length: int = 8, explain_failures: bool = False):
        self.minimum_length = minimum_length
        self.explain_failures = explain_failures

    @staticmethod
    def has_lower_character(candidate: str) -> bool:
        return any("a" <= c <= "z" for c in candidate)

    @staticmethod
    def has_upper_character(candidate: str) -> bool:
        return any("A" <= c <= "Z" for c in candidate)

    @staticmethod
    def has_digit_character(candidate: str) -> bool:
        return any("0" <= c <= "9" for c in candidate)

    @staticmethod
    def has_special_character(candidate: str) -> bool:
        return any(c in SPECIAL_CHARACTERS for c in candidate)

    def has_minimum_length(self, candidate: str) -> bool:
        return len(candidate) >= self.minimum_length

    def check_password(self, candidate: str, confirmation: Optional[str] = None) -> PasswordCheckResult:
        """
        Check a candidate password against the policy.

        Args:
            candidate: Password to check
            confirmation: Optional second entry; compared only when non-empty and every base rule passed

        Returns:
            PasswordCheckResult; ``isValid`` is True iff there are no violations
        """
        candidate = candidate or ""
        violations: list[PasswordViolationOut] = []
        rules = [
            (self.has_lower_character(candidate), PasswordViolation.NO_LOWER_CHAR),
            (self.has_upper_character(candidate), PasswordViolation.NO_UPPER_CHAR),
            (self.has_digit_character(candidate), PasswordViolation.NO_DIGIT_CHAR),
            (self.has_special_character(candidate), PasswordViolation.NO_SYMBOL_CHAR),
            (self.has_minimum_length(candidate), PasswordViolation.TOO_SHORT),
        ]
        for passed, violation in rules:
            if not passed:
                violations.append(self._violation(violation))

        if confirmation and not violations and confirmation != candidate:
            violations.append(self._violation(PasswordViolation.CONFIRM_NOT_SAME))

        return PasswordCheckResult(input=candidate, isValid=not violations, violations=violations)

    def _violation(self, violation: PasswordViolation) -> PasswordViolationOut:
        if not self.explain_failures:
            return PasswordViolationOut(code=int(violation))
        return PasswordViolationOut(code=int(violation), message=self.describe(violation))

    def describe(self, violation: PasswordViolation) -> str:
        if violation == PasswordViolation.NO_LOWER_CHAR:
            return "Password must contain at least one lower character"
        if violation == PasswordViolation.NO_UPPER_CHAR:
            return "Password must contain at least one upper character"
        if violation == PasswordViolation.NO_DIGIT_CHAR:
            return "Password must contain at least one digit character"
        if violation == PasswordViolation.NO_SYMBOL_CHAR:
            return "Password must contain at least one special character"
        if violation == PasswordViolation.TOO_SHORT:
            return f"Password must contain at least {self.minimum_length} characters"
        if violation == PasswordViolation.CONFIRM_NOT_SAME:
            return "Password confirm must be same as the first password input"
        return "unknown password error"
