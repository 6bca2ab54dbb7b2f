# portal/services/auth_provider.py
"""Sign-in providers and their restore-cookie login types."""
from enum import IntEnum


class AuthProvider(IntEnum):
    UNKNOWN = 0
    PASSWORD = 1
    GOOGLE_OAUTH2 = 2
    FACEBOOK = 3


_BY_NAME = {
    "password": AuthProvider.PASSWORD,
    "google-oauth2": AuthProvider.GOOGLE_OAUTH2,
    "facebook": AuthProvider.FACEBOOK,
}

# loginType stored in the restore cookie
LOCAL_LOGIN = "local"


def parse_provider(name: str) -> AuthProvider:
    """
    Raises:
        ValueError: If the provider is not supported
    """
    try:
        return _BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unsupported auth provider: {name}") from None


def login_type_for(provider: AuthProvider) -> str:
    if provider == AuthProvider.PASSWORD:
        return LOCAL_LOGIN
    for name, value in _BY_NAME.items():
        if value == provider:
            return name
    raise ValueError(f"Unsupported auth provider: {provider!r}")


def is_known_login_type(login_type: str) -> bool:
    return login_type == LOCAL_LOGIN or (login_type in _BY_NAME and login_type != "password")
