# portal/models/account.py
"""
Database model for accounts.
One row per registered identity: credentials, session bookkeeping and
email verification state.
"""
from tortoise import fields, models


class Account(models.Model):
    """
    Account database model.

    Security:
    - password_hash holds ``hex(key) + hex(salt)`` or the no-password sentinel, never plain text
    - email is unique at the database level, so concurrent sign-ups cannot both insert
    - verify_token only exists while a verification request is outstanding

    Counters:
    - login_count counts fresh sign-ins, session_count counts every session
      (fresh + restored), so login_count <= session_count always holds
    """
    id = fields.IntField(pk=True)  # Surrogate key assigned by the database
    email = fields.CharField(max_length=320, unique=True, index=True)  # Sign-in identifier
    nickname = fields.CharField(max_length=255, default="")  # Display name, editable by the owner
    password_hash = fields.CharField(max_length=512)  # Hash record or NO_PASSWORD_HASH
    created = fields.DatetimeField()  # Stamped from the database clock on sign-up
    login_count = fields.IntField(default=0)
    session_count = fields.IntField(default=0)
    last_session = fields.DatetimeField(null=True)  # Most recent session event (fresh or restored)
    verified = fields.BooleanField(default=False)
    verify_token = fields.CharField(max_length=128, null=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "account"

    def __str__(self) -> str:
        return self.email
