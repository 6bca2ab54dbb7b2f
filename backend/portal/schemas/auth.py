# portal/schemas/auth.py
"""
Pydantic schemas for sign-in / sign-up endpoints.
"""
from pydantic import BaseModel

__all__ = ["SignInRequest", "SignUpRequest", "NicknameIn"]


class SignInRequest(BaseModel):
    """
    Request model for password sign-in.
    """
    email: str = ""  # Account email
    password: str = ""  # Plain text, checked against the stored hash record
    remember: bool = False  # Issue the signed restore cookies


class SignUpRequest(BaseModel):
    """
    Request model for password sign-up.
    """
    email: str = ""
    password: str = ""
    passwordConfirm: str | None = None  # Optional second entry, compared after the base rules pass


class NicknameIn(BaseModel):
    nickname: str = ""
