# portal/schemas/account.py
"""
Pydantic schemas for account data leaving the service.
None of them carries the password hash or the verification token.
"""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

__all__ = ["AccountOut", "UserStatistics", "ResetPasswordIn", "ResetPasswordOut"]


class AccountOut(BaseModel):
    """
    Public view of an account, as listed by /user/list.
    """
    id: int
    email: str
    nickname: str
    created: dt.datetime
    loginCount: int = Field(validation_alias="login_count")
    sessionCount: int = Field(validation_alias="session_count")
    lastSession: Optional[dt.datetime] = Field(default=None, validation_alias="last_session")
    verified: bool

    class Config:
        """Pydantic configuration: allow both field name and alias for population."""
        populate_by_name = True


class UserStatistics(BaseModel):
    totalCount: int  # Registered accounts
    todayActive: int  # Accounts with a session since local midnight
    weeklyAverage: float  # Accounts with a session in the trailing 7 days, divided by 7 (unrounded)


class ResetPasswordIn(BaseModel):
    """
    Request model for /user/reset-password.
    """
    userId: int | str | None = None  # Must be the id of the signed-in account
    oldPassword: str = ""
    password: str = ""  # New password


class ResetPasswordOut(BaseModel):
    isValid: bool
    message: Optional[str] = None
    information: Optional[str] = None
