# portal/services/account_store.py
"""
Account store: the authoritative layer over Account rows.

Concurrency rules:
- Email uniqueness is enforced by the database; the existence check before
  insert only produces a nicer error in the common case.
- Counter updates are single UPDATE statements using F() expressions, never
  read-modify-write in Python.
- Password change is predicated on the hash that was just verified.
- Hashing runs in the thread pool so it never blocks the event loop.
"""
import logging
from typing import List, Optional

from starlette.concurrency import run_in_threadpool
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.exceptions import IntegrityError
from tortoise.expressions import F

from portal.core.db import db_now, get_connection, has_rows, update_count
from portal.core.errors import ConflictError, PasswordMismatchError, SamePasswordError
from portal.core.security import NO_PASSWORD_HASH, check_hash, make_hash, new_verify_token
from portal.core.timeutil import add_days, day_start
from portal.models.account import Account
from portal.schemas.account import UserStatistics

logger = logging.getLogger(__name__)

# Columns that may leave the store; password_hash and verify_token never do
PUBLIC_FIELDS = (
    "id",
    "email",
    "nickname",
    "created",
    "login_count",
    "session_count",
    "last_session",
    "verified",
)


class AccountStore:
    """
    CRUD and business rules over accounts, bound to one Tortoise connection.

    Args:
        connection_name: Tortoise connection to run every query on
        stats_timezone: IANA zone defining "today" for statistics (None = host zone)
    """

    def __init__(self, connection_name: str = "default", stats_timezone: Optional[str] = None):
        self.connection_name = connection_name
        self.stats_timezone = stats_timezone

    @property
    def db(self) -> BaseDBAsyncClient:
        return get_connection(self.connection_name)

    async def now(self):
        """Current time according to the database clock."""
        return await db_now(self.db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def find_by_email(self, email: str) -> List[Account]:
        """
        Find accounts with exactly this email.

        Returns whatever the table holds; callers re-check that exactly one
        row came back instead of assuming uniqueness.
        """
        return await Account.filter(email=email).using_db(self.db)

    async def find_by_id(self, account_id: int) -> Optional[Account]:
        return await Account.filter(id=account_id).using_db(self.db).first()

    async def _find_single(self, email: str) -> Optional[Account]:
        accounts = await self.find_by_email(email)
        if len(accounts) != 1:
            return None
        return accounts[0]

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    async def sign_up(
        self,
        email: str,
        raw_password: Optional[str],
        nickname: str,
        verified: bool = False,
    ) -> int:
        """
        Create an account.

        Args:
            email: Sign-in identifier, must not be registered yet
            raw_password: Plain password, or None for trusted-identity sign-up
            nickname: Initial display name
            verified: True only for trusted external identities

        Returns:
            Number of inserted rows (1)

        Raises:
            ConflictError: If the email is already registered
        """
        if has_rows(await self.find_by_email(email)):
            raise ConflictError("E-mail was already used")

        if raw_password:
            password_hash = await run_in_threadpool(make_hash, raw_password)
        else:
            password_hash = NO_PASSWORD_HASH

        now = await self.now()
        try:
            await Account.create(
                using_db=self.db,
                email=email,
                nickname=nickname,
                password_hash=password_hash,
                created=now,
                login_count=0,
                session_count=0,
                last_session=None,
                verified=verified,
            )
        except IntegrityError as exc:
            # Lost the race against a concurrent sign-up for the same email
            raise ConflictError("E-mail was already used") from exc

        logger.info("[account] signed up email=%s verified=%s", email, verified)
        return 1

    async def sign_in(self, email: str, raw_password: str) -> bool:
        """Check a password; False unless exactly one account matches and the hash verifies."""
        account = await self._find_single(email)
        if account is None:
            return False
        return await run_in_threadpool(check_hash, raw_password, account.password_hash)

    async def change_password(self, email: str, old_raw: str, new_raw: str) -> int:
        """
        Replace the password hash after checking the old password.

        Returns:
            Number of updated rows; 0 means the row changed underneath us

        Raises:
            SamePasswordError: If the new password equals the old one
            PasswordMismatchError: If the old password does not verify
        """
        if old_raw == new_raw:
            raise SamePasswordError("new password equals old password")

        account = await self._find_single(email)
        if account is None:
            raise PasswordMismatchError("no single account for email")
        if not await run_in_threadpool(check_hash, old_raw, account.password_hash):
            raise PasswordMismatchError("old password mismatch")

        new_hash = await run_in_threadpool(make_hash, new_raw)
        result = await (
            Account.filter(email=email, password_hash=account.password_hash)
            .using_db(self.db)
            .update(password_hash=new_hash)
        )
        return update_count(result)

    async def change_nickname(self, email: str, nickname: str) -> int:
        if not email or not nickname:
            return 0
        result = await Account.filter(email=email).using_db(self.db).update(nickname=nickname)
        return update_count(result)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    async def update_session(self, email: str, is_restored: bool) -> bool:
        """
        Record a session event in one atomic UPDATE.

        session_count always grows and last_session moves to the database
        clock; login_count grows only for fresh (non-restored) sign-ins.
        """
        if await self._find_single(email) is None:
            return True

        changes = {
            "session_count": F("session_count") + 1,
            "last_session": await self.now(),
        }
        if not is_restored:
            changes["login_count"] = F("login_count") + 1

        result = await Account.filter(email=email).using_db(self.db).update(**changes)
        if update_count(result) != 1:
            logger.error("[account] session update touched %s rows for email=%s", result, email)
            return False
        return True

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------
    async def issue_verification_token(self, email: str) -> str:
        """
        Store a fresh verification token, replacing any previous one.

        Returns:
            The token, or "" if no single account matched or the update failed
        """
        if await self._find_single(email) is None:
            return ""
        token = new_verify_token()
        result = await Account.filter(email=email).using_db(self.db).update(verify_token=token)
        if update_count(result) != 1:
            logger.error("[account] token update touched %s rows for email=%s", result, email)
            return ""
        return token

    async def consume_verification_token(self, email: str, token: str) -> bool:
        """
        Mark the account verified if ``token`` is the one currently stored.

        The token is cleared on success, so each token verifies once and an
        older token stops working as soon as a newer one is issued.
        """
        if not email or not token:
            return False
        result = await (
            Account.filter(email=email, verify_token=token)
            .using_db(self.db)
            .update(verified=True, verify_token=None)
        )
        return update_count(result) == 1

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    async def count_total(self) -> int:
        return await Account.all().using_db(self.db).count()

    async def count_active_between(self, start, end) -> int:
        return await (
            Account.filter(last_session__gte=start, last_session__lte=end)
            .using_db(self.db)
            .count()
        )

    async def get_user_statistics(self) -> UserStatistics:
        """
        Totals and activity, measured against the database clock.

        weeklyAverage is left unrounded; rounding belongs to presentation.
        """
        now = await self.now()
        total_count = await self.count_total()
        today_active = await self.count_active_between(day_start(now, self.stats_timezone), now)
        week_active = await self.count_active_between(add_days(now, -7), now)
        return UserStatistics(
            totalCount=total_count,
            todayActive=today_active,
            weeklyAverage=week_active / 7,
        )

    async def get_user_list(self) -> List[dict]:
        """All accounts ordered by id, without password hash or verification token."""
        return await Account.all().using_db(self.db).order_by("id").values(*PUBLIC_FIELDS)
