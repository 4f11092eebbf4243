"""
Outbound email for one-time codes.

ResendEmailSender talks to the Resend HTTP API. Without an API key the
ConsoleEmailSender is used instead, which only logs what would have been sent
so local development does not burn provider quota.
"""

from typing import Optional, Protocol

import httpx

from orcachat.common.custom_exceptions import ExternalSendFailure
from orcachat.config.settings import Settings
from orcachat.otp.constants import CODE_TTL_MS, logger


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> None:
        ...


def render_code_email(code: str) -> str:
    minutes = CODE_TTL_MS // 60000
    return f"""
    <div style="font-family: Inter, system-ui, Arial; color:#0b2a44;">
      <h3>Blue Orca verification code</h3>
      <div style="font-size:28px;font-weight:700;margin:10px 0;">{code}</div>
      <p>Valid for {minutes} minutes. If this wasn't you, ignore this email.</p>
    </div>
    """


class ResendEmailSender:
    def __init__(self, api_key: str, from_address: str, base_url: str = "https://api.resend.com",
                 timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.from_address = from_address
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html_body: str) -> None:
        url = f"{self.base_url}/emails"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("otp.email.rejected", extra={"status_code": exc.response.status_code, "destination": to})
            raise ExternalSendFailure() from exc
        except httpx.HTTPError as exc:
            logger.error("otp.email.transport_error", extra={"error": repr(exc), "destination": to})
            raise ExternalSendFailure() from exc

        logger.info("otp.email.sent", extra={"destination": to})


class ConsoleEmailSender:
    async def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info("otp.email.console", extra={"destination": to, "subject": subject, "body": html_body})


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.RESEND_API_KEY:
        logger.warning("otp.email.console_mode", extra={"reason": "RESEND_API_KEY not set"})
        return ConsoleEmailSender()
    return ResendEmailSender(
        api_key=settings.RESEND_API_KEY,
        from_address=settings.EMAIL_FROM,
        base_url=settings.RESEND_API_URL,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
