# portal/services/email_sender.py
"""
Outbound email collaborator.

From the caller's point of view sending is fire-and-forget: failures are
logged here and never raised, so a broken transport cannot undo the account
change that triggered the mail (the user can ask for a resend).
"""
import logging
from urllib.parse import quote

import httpx

from portal.config import settings

logger = logging.getLogger(__name__)


def build_verify_link(verify_url: str, email: str, token: str) -> str:
    """``{verify_url}/{percent-encoded email}/{token}``"""
    return f"{verify_url.rstrip('/')}/{quote(email, safe='')}/{token}"


def verification_message(sender: str, email: str, link: str) -> dict:
    """SendGrid v3 payload for the verification email."""
    return {
        "personalizations": [{"to": [{"email": email}]}],
        "from": {"email": sender},
        "subject": "Verification Email",
        "content": [
            {"type": "text/plain", "value": f"Verification Email: {link}"},
            {"type": "text/html", "value": f'Click <a href="{link}">HERE</a> to verify your E-mail.'},
        ],
    }


class LoggingEmailSender:
    """Development transport: writes the verification link to the log."""

    def __init__(self, verify_url: str):
        self.verify_url = verify_url

    async def send_verification_email(self, email: str, token: str) -> None:
        link = build_verify_link(self.verify_url, email, token)
        logger.info("[email] (not sent) verification for %s -> %s", email, link)


class SendGridEmailSender:
    """
    Sends mail through the SendGrid v3 HTTP API.

    Args:
        api_key: SendGrid API key
        sender: Verified sender address
        verify_url: Base URL of the verification endpoint
        api_url: SendGrid mail/send endpoint
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        verify_url: str,
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.verify_url = verify_url
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    async def send_mail(self, message: dict) -> None:
        headers = {
            "authorization": f"Bearer {self.api_key}",
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.api_url, headers=headers, json=message)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("[email] send failed: %s", exc)

    async def send_verification_email(self, email: str, token: str) -> None:
        link = build_verify_link(self.verify_url, email, token)
        await self.send_mail(verification_message(self.sender, email, link))


def create_email_sender():
    """Pick the transport from settings: SendGrid when an API key is configured."""
    if settings.sendgrid_api_key:
        return SendGridEmailSender(
            api_key=settings.sendgrid_api_key,
            sender=settings.sendgrid_sender,
            verify_url=settings.verify_url,
            api_url=settings.sendgrid_api_url,
        )
    logger.warning("[email] SENDGRID_API_KEY not set, verification emails are only logged")
    return LoggingEmailSender(settings.verify_url)
