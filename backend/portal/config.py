# portal/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

DEV_SESSION_SECRET = "dev-session-secret"
DEV_COOKIE_SECRET = "dev-cookie-secret"


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Member Portal"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "9000"))

    # CORS origins for the frontend
    CORS_ORIGINS: list[str] = _split_origins(
        os.getenv("CORS_ORIGINS", "http://localhost:9000,http://127.0.0.1:9000")
    )

    # Database (Tortoise URL format)
    database_url: str = os.getenv("DATABASE_URL", "sqlite://db.sqlite3")

    # Secrets: session token and restore cookies are signed with different keys
    session_secret: str = os.getenv("SESSION_SECRET", DEV_SESSION_SECRET)
    cookie_secret: str = os.getenv("COOKIE_SECRET", DEV_COOKIE_SECRET)

    # Cookie policy
    session_max_age: int = int(os.getenv("SESSION_MAX_AGE", str(8 * 3600)))  # 8 hours
    restore_max_age: int = int(os.getenv("RESTORE_MAX_AGE", str(24 * 3600)))  # 24 hours
    cookie_secure: bool = os.getenv("COOKIE_SECURE", "false").lower() in ("true", "1", "yes")

    # Links sent by email
    service_base: str = os.getenv("SERVICE_BASE", "http://localhost:9000")
    verify_url: str = os.getenv(
        "VERIFY_URL", os.getenv("SERVICE_BASE", "http://localhost:9000") + "/user/verify"
    )

    # SendGrid (outbound email); without an API key mails are only logged
    sendgrid_api_key: str | None = os.getenv("SENDGRID_API_KEY")
    sendgrid_sender: str = os.getenv("SENDGRID_SENDER", "test@example.com")
    sendgrid_api_url: str = os.getenv("SENDGRID_API_URL", "https://api.sendgrid.com/v3/mail/send")

    # Password policy
    password_min_length: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))

    # IANA zone used for "today" in statistics; None means host local time
    stats_timezone: str | None = os.getenv("STATS_TIMEZONE") or None

    def check_secrets(self) -> None:
        """
        Refuse to run outside development with the built-in secrets.

        Raises:
            RuntimeError: If SESSION_SECRET or COOKIE_SECRET was not configured
        """
        if self.env == "dev":
            return
        if self.session_secret == DEV_SESSION_SECRET:
            raise RuntimeError("SESSION_SECRET not set")
        if self.cookie_secret == DEV_COOKIE_SECRET:
            raise RuntimeError("COOKIE_SECRET not set")


settings = Settings()  # Instantiate configuration
