# portal/core/security.py
"""
Security module for authentication.
Handles password hash records, the signed session token and the signed
"remember me" restore cookies.

Hash record layout (lowercase hex, fixed width):

    hex(key)            hex(salt)
    |<- 2*KEY_LENGTH ->|<- 2*SALT_LENGTH ->|

The key is derived with Argon2id, a memory-hard function, from the raw secret
and a salt drawn fresh for every record.
"""
import datetime as dt
import hmac
import re
import secrets

import jwt  # PyJWT
from argon2.low_level import Type, hash_secret_raw

from portal.config import settings
from portal.core.errors import CorruptRecordError

# Key derivation parameters (changing any of them invalidates stored records)
SALT_LENGTH = 64      # bytes
KEY_LENGTH = 128      # bytes
TIME_COST = 2         # iterations
MEMORY_COST = 19456   # KiB
PARALLELISM = 1

HASH_RECORD_LENGTH = 2 * (KEY_LENGTH + SALT_LENGTH)

# Stored for accounts without a password. Never a valid record: wrong length and not hex.
NO_PASSWORD_HASH = "x"

# Password value carried by the restore cookie; accepted only through cookie restoration
RESTORE_SENTINEL = "x"

VERIFY_TOKEN_BYTES = 32

JWT_ALG = "HS256"  # JWT signing algorithm (HMAC SHA-256)

_HEX_RE = re.compile(r"[0-9a-f]+")


def _derive_key(raw: str, salt: bytes) -> bytes:
    return hash_secret_raw(
        secret=raw.encode("utf-8", "surrogatepass"),  # lone surrogates are valid JSON string content
        salt=salt,
        time_cost=TIME_COST,
        memory_cost=MEMORY_COST,
        parallelism=PARALLELISM,
        hash_len=KEY_LENGTH,
        type=Type.ID,
    )


def make_hash(raw: str) -> str:
    """
    Hash a raw secret into a storable record.

    Args:
        raw: Plain text secret

    Returns:
        ``hex(key) + hex(salt)``; two calls with the same secret never return
        the same record because the salt is drawn fresh each time
    """
    salt = secrets.token_bytes(SALT_LENGTH)
    return _derive_key(raw, salt).hex() + salt.hex()


def split_hash_record(record: str) -> tuple[str, str]:
    """
    Split a hash record into its key and salt hex parts.

    Raises:
        CorruptRecordError: If the record is not exactly HASH_RECORD_LENGTH hex digits
    """
    if not isinstance(record, str) or len(record) != HASH_RECORD_LENGTH:
        raise CorruptRecordError("hash record has wrong length")
    if not _HEX_RE.fullmatch(record):
        raise CorruptRecordError("hash record is not lowercase hex")
    cut = 2 * KEY_LENGTH
    return record[:cut], record[cut:]


def check_hash(raw: str, record: str) -> bool:
    """
    Verify a raw secret against a stored record.

    Never raises: a malformed record (including NO_PASSWORD_HASH) simply fails.
    """
    if not isinstance(raw, str):
        return False
    try:
        key_hex, salt_hex = split_hash_record(record)
    except CorruptRecordError:
        return False
    derived = _derive_key(raw, bytes.fromhex(salt_hex)).hex()
    return hmac.compare_digest(derived, key_hex)


def new_verify_token() -> str:
    """Fresh random email verification token (hex)."""
    return secrets.token_hex(VERIFY_TOKEN_BYTES)


def create_session_token(email: str, login_type: str, restored: bool = False) -> str:
    """
    Create the signed session token kept in the session cookie.

    Token payload includes:
        - sub: Account email
        - lt: Login type ("local" or a provider name)
        - rs: Whether the session came from a restore cookie
        - iat / exp: Issued-at and expiration timestamps
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": email,
        "lt": login_type,
        "rs": restored,
        "iat": now,
        "exp": now + dt.timedelta(seconds=settings.session_max_age),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=JWT_ALG)


def decode_session_token(token: str) -> dict:
    """
    Decode and validate a session token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, tampered with or expired
    """
    return jwt.decode(token, settings.session_secret, algorithms=[JWT_ALG])


def sign_cookie_value(name: str, value: str) -> str:
    """
    Sign one restore cookie value. The cookie name is part of the signed
    payload so a value cannot be moved to another cookie.
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "c": name,
        "v": value,
        "iat": now,
        "exp": now + dt.timedelta(seconds=settings.restore_max_age),
    }
    return jwt.encode(payload, settings.cookie_secret, algorithm=JWT_ALG)


def unsign_cookie_value(name: str, token: str | None) -> str | None:
    """Return the value of a signed restore cookie, or None if it does not verify."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.cookie_secret, algorithms=[JWT_ALG])
    except jwt.InvalidTokenError:
        return None
    if payload.get("c") != name:
        return None
    value = payload.get("v")
    return value if isinstance(value, str) else None
