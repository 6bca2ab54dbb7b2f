# portal/services/auth_coordinator.py
"""
Session/auth coordinator.

Bridges inbound credentials to an authenticated identity:

    Unauthenticated --(password ok)--------> Authenticated(fresh)     login_count + session_count
    Unauthenticated --(restore cookies ok)-> Authenticated(restored)  session_count only
    Authenticated   --(sign out)-----------> Unauthenticated

The restore cookies are signed with COOKIE_SECRET and stand in for the
password: whoever holds that secret can sign in as any user holding an
active restore cookie.

This is also the only layer that turns typed failures into user-facing text
(see ``message_for``).
"""
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

import jwt  # PyJWT
from starlette.responses import Response

from portal.config import settings
from portal.core.errors import (
    AuthenticationError,
    ConflictError,
    InputValidationError,
    InternalConsistencyError,
    PortalError,
)
from portal.core.security import (
    RESTORE_SENTINEL,
    create_session_token,
    decode_session_token,
    sign_cookie_value,
    unsign_cookie_value,
)
from portal.models.account import Account
from portal.services.account_store import AccountStore
from portal.services.auth_provider import (
    LOCAL_LOGIN,
    AuthProvider,
    is_known_login_type,
    login_type_for,
)
from portal.services.password_checker import PasswordChecker

logger = logging.getLogger(__name__)

USER_HOME = "/user/dashboard"

SESSION_COOKIE = "sess"
RESTORE_USER_COOKIE = "user"
RESTORE_TYPE_COOKIE = "loginType"
RESTORE_PASSWORD_COOKIE = "password"
RESTORE_COOKIES = (RESTORE_USER_COOKIE, RESTORE_TYPE_COOKIE, RESTORE_PASSWORD_COOKIE)
RETURN_TO_COOKIE = "returnTo"

EMAIL_RE = re.compile(r"\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{1,3}")

GENERIC_FAILURE = "Operation failed, please try again later"

MESSAGES = {
    "EMAIL_REQUIRED": "Please input E-mail",
    "EMAIL_INVALID": "Invalid E-mail",
    "PASSWORD_REQUIRED": "Please input password",
    "PASSWORD_WEAK": "Password does not meet the requirements",
    "EMAIL_EXISTS": "E-mail was already used",
    "AUTH_INVALID_CREDENTIALS": "Incorrect email or password",
    "ACCOUNT_MISMATCH": "Failed to update password",
    "PASSWORD_UNCHANGED": "New password must be different from the old password",
    "OLD_PASSWORD_MISMATCH": "Old password mismatch",
    "PASSWORD_UPDATED": "Password updated",
    "NOT_SIGNED_IN": "Not signed in",
    "VERIFICATION_NOT_SENT": "Failed to send verification email",
    "INTERNAL_CONSISTENCY": GENERIC_FAILURE,
    "CORRUPT_RECORD": GENERIC_FAILURE,
}


@dataclass(frozen=True)
class Identity:
    """Authenticated identity attached to a request."""
    email: str
    login_type: str = LOCAL_LOGIN
    restored: bool = False


def serialize_identity(identity: Identity) -> str:
    return create_session_token(identity.email, identity.login_type, identity.restored)


def deserialize_identity(token: Optional[str]) -> Optional[Identity]:
    if not token:
        return None
    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        return None
    email = payload.get("sub")
    if not email:
        return None
    return Identity(
        email=email,
        login_type=payload.get("lt") or LOCAL_LOGIN,
        restored=bool(payload.get("rs")),
    )


def _is_storable(value: str) -> bool:
    """False for strings the database driver cannot encode (lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def safe_return_path(path: Optional[str]) -> str:
    """Only same-site absolute paths are accepted as post-login redirect targets."""
    if not path or not path.startswith("/") or path.startswith("//") or "\\" in path:
        return USER_HOME
    return path


def validate_email(email: str) -> str:
    """
    Raises:
        InputValidationError: EMAIL_REQUIRED or EMAIL_INVALID
    """
    email = (email or "").strip()
    if not email:
        raise InputValidationError("EMAIL_REQUIRED")
    if not EMAIL_RE.fullmatch(email):
        raise InputValidationError("EMAIL_INVALID")
    return email


class AuthCoordinator:
    """
    Args:
        store: Account store every operation runs against
        password_checker: Policy used on sign-up and password change
        email_sender: Outbound email collaborator (``send_verification_email``)
    """

    def __init__(self, store: AccountStore, password_checker: PasswordChecker, email_sender):
        self.store = store
        self.password_checker = password_checker
        self.email_sender = email_sender

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def message_for(self, err: PortalError) -> str:
        """User-facing text for a typed failure."""
        if isinstance(err, InputValidationError) and err.check is not None:
            messages = err.check.messages()
            if messages:
                return "\n".join(messages)
        return self.message(err.code)

    def message(self, code: str) -> str:
        return MESSAGES.get(code, GENERIC_FAILURE)

    # ------------------------------------------------------------------
    # Sign-up / sign-in
    # ------------------------------------------------------------------
    async def sign_up(self, email: str, password: str, confirmation: Optional[str] = None) -> int:
        """
        Password sign-up: input validation, policy check, then insert.

        Raises:
            InputValidationError: Missing/malformed email, missing or weak password
            ConflictError: Email already registered
        """
        email = validate_email(email)
        if not password:
            raise InputValidationError("PASSWORD_REQUIRED")
        check = self.password_checker.check_password(password, confirmation)
        if not check.isValid:
            raise InputValidationError("PASSWORD_WEAK", check=check)
        nickname = email.split("@")[0]
        return await self.store.sign_up(email, password, nickname, verified=False)

    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Fresh password sign-in.

        Raises:
            InputValidationError: Email or password missing
            AuthenticationError: Unknown email, wrong password or the restore
                sentinel submitted as a password (never distinguished)
        """
        email = (email or "").strip()
        if not email:
            raise InputValidationError("EMAIL_REQUIRED")
        if not password:
            raise InputValidationError("PASSWORD_REQUIRED")
        if not _is_storable(email):
            logger.info("[auth] sign-in rejected for unstorable email")
            raise AuthenticationError("invalid credentials")
        if password == RESTORE_SENTINEL or not await self.store.sign_in(email, password):
            logger.info("[auth] sign-in rejected for email=%s", email)
            raise AuthenticationError("invalid credentials")
        await self.store.update_session(email, is_restored=False)
        logger.info("[auth] sign-in email=%s", email)
        return Identity(email=email, login_type=LOCAL_LOGIN)

    async def sign_in_trusted(self, email: str, nickname: str, provider: AuthProvider) -> Identity:
        """
        Sign in an identity asserted by an external provider.

        The account is created on first use with no usable password and
        verified=True.
        """
        if provider in (AuthProvider.PASSWORD, AuthProvider.UNKNOWN):
            raise ValueError(f"Not a trusted identity provider: {provider!r}")
        email = validate_email(email)
        if not await self.store.find_by_email(email):
            try:
                await self.store.sign_up(email, None, nickname or email.split("@")[0], verified=True)
            except ConflictError:
                pass  # created concurrently by another request
        await self.store.update_session(email, is_restored=False)
        logger.info("[auth] trusted sign-in email=%s provider=%s", email, provider.name)
        return Identity(email=email, login_type=login_type_for(provider))

    async def restore(self, cookies: Mapping[str, str]) -> Optional[Identity]:
        """
        Authenticate from the signed restore cookies, bypassing the password check.

        Returns:
            Identity(restored=True), or None if any cookie is missing, unsigned
            or stale, or the account no longer exists
        """
        email = unsign_cookie_value(RESTORE_USER_COOKIE, cookies.get(RESTORE_USER_COOKIE))
        login_type = unsign_cookie_value(RESTORE_TYPE_COOKIE, cookies.get(RESTORE_TYPE_COOKIE))
        password = unsign_cookie_value(RESTORE_PASSWORD_COOKIE, cookies.get(RESTORE_PASSWORD_COOKIE))
        if not email or not login_type or password != RESTORE_SENTINEL:
            return None
        if not is_known_login_type(login_type):
            return None
        if len(await self.store.find_by_email(email)) != 1:
            return None
        await self.store.update_session(email, is_restored=True)
        logger.info("[auth] session restored email=%s", email)
        return Identity(email=email, login_type=login_type, restored=True)

    async def resolve(
        self,
        cookies: Mapping[str, str],
        allow_restore: bool = True,
    ) -> Tuple[Optional[Identity], bool]:
        """
        Identity of an inbound request.

        Args:
            cookies: Request cookies
            allow_restore: Fall back to the restore cookies when there is no
                session token; off for requests that establish or end a session

        Returns:
            (identity, restored_now); restored_now tells the caller a new
            session cookie has to be written
        """
        identity = deserialize_identity(cookies.get(SESSION_COOKIE))
        if identity is not None or not allow_restore:
            return identity, False
        identity = await self.restore(cookies)
        return identity, identity is not None

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------
    def _set_cookie(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )

    def issue_session(self, response: Response, identity: Identity, remember: bool = False) -> None:
        """Write the session cookie, plus the signed restore triple when ``remember``."""
        self._set_cookie(response, SESSION_COOKIE, serialize_identity(identity), settings.session_max_age)
        if remember:
            restore_values = {
                RESTORE_USER_COOKIE: identity.email,
                RESTORE_TYPE_COOKIE: identity.login_type,
                RESTORE_PASSWORD_COOKIE: RESTORE_SENTINEL,
            }
            for name, value in restore_values.items():
                self._set_cookie(response, name, sign_cookie_value(name, value), settings.restore_max_age)

    def sign_out(self, response: Response) -> None:
        for name in (SESSION_COOKIE, RETURN_TO_COOKIE, *RESTORE_COOKIES):
            response.delete_cookie(name, path="/")

    # ------------------------------------------------------------------
    # Account operations gated on an identity
    # ------------------------------------------------------------------
    async def load_account(self, identity: Optional[Identity]) -> Optional[Account]:
        if identity is None:
            return None
        accounts = await self.store.find_by_email(identity.email)
        if len(accounts) != 1:
            return None
        return accounts[0]

    async def change_password(self, identity: Identity, user_id: int, old_password: str, new_password: str) -> None:
        """
        Change the signed-in user's password.

        Raises:
            AuthenticationError: ``user_id`` is not the signed-in account
            InputValidationError: New password fails the policy
            SamePasswordError / PasswordMismatchError: From the store
            InternalConsistencyError: The update did not touch exactly one row
        """
        account = await self.store.find_by_id(user_id)
        if account is None or account.email != identity.email:
            raise AuthenticationError("account does not belong to identity", code="ACCOUNT_MISMATCH")
        check = self.password_checker.check_password(new_password or "")
        if not check.isValid:
            raise InputValidationError("PASSWORD_WEAK", check=check)
        count = await self.store.change_password(identity.email, old_password or "", new_password)
        if count != 1:
            logger.error("[auth] password update touched %s rows for email=%s", count, identity.email)
            raise InternalConsistencyError(f"password update touched {count} rows")
        logger.info("[auth] password changed email=%s", identity.email)

    async def request_verification(self, identity: Identity) -> str:
        """
        Issue a verification token for the signed-in account.

        Returns:
            The new token ("" if none could be stored); sending the mail is
            left to the caller so it can run after the response
        """
        token = await self.store.issue_verification_token(identity.email)
        if not token:
            logger.error("[auth] verification token not stored for email=%s", identity.email)
        return token

    async def verify_email(self, email: str, token: str) -> bool:
        verified = await self.store.consume_verification_token(email, token)
        logger.info("[auth] verification email=%s ok=%s", email, verified)
        return verified
