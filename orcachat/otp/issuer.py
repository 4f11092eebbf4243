import math
import secrets
from typing import Callable

from orcachat.auth.repository import mark_verified
from orcachat.common.custom_exceptions import ExternalSendFailure, InvalidOrExpired, RateLimited
from orcachat.common.utils import now_ms
from orcachat.otp.constants import (BLOCK_MS, CODE_MAX, CODE_MIN, CODE_TTL_MS, IP_MAX_SENDS, MAX_SENDS,
                                    WINDOW_MS, logger)
from orcachat.otp.mailer import EmailSender, render_code_email
from orcachat.otp.repository import (consume_verification_request, count_recent_sends_from, lock_send_keys,
                                     recent_send_times, record_send_attempt, replace_verification_request)
from metrics.custom_instrumentator import OTP_REQUESTS


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


class ThrottledCodeIssuer:
    """
    Issues and verifies email one-time codes while protecting the (paid, externally
    rate-limited) email provider.

    Admission is decided and recorded in a single transaction: the send-attempt counts,
    the replacement of the destination's live code and the new send attempt are
    committed together, so two concurrent requests cannot both slip under the limit.
    The email goes out only after that commit; a provider failure still costs the
    caller one attempt.
    """

    def __init__(self, session_maker, sender: EmailSender, subject: str,
                 clock: Callable[[], int] = now_ms):
        self.session_maker = session_maker
        self.sender = sender
        self.subject = subject
        self.clock = clock

    async def request_code(self, destination: str, client_address: str) -> None:
        now = self.clock()
        window_start = now - WINDOW_MS

        async with self.session_maker() as session:
            async with session.begin():
                await lock_send_keys(session, destination, client_address)

                recent = await recent_send_times(session, destination, window_start)
                if len(recent) >= MAX_SENDS:
                    # anchored to the latest send, not to the window edge
                    blocked_until = recent[0] + BLOCK_MS
                    if blocked_until > now:
                        retry_after = math.ceil((blocked_until - now) / 1000)
                        logger.warning("otp.request.rate_limited",
                                       extra={"destination": destination, "retry_after": retry_after})
                        OTP_REQUESTS.labels(outcome="rate_limited").inc()
                        raise RateLimited(retry_after=retry_after)

                from_address = await count_recent_sends_from(session, client_address, window_start)
                if from_address >= IP_MAX_SENDS:
                    logger.warning("otp.request.rate_limited_ip", extra={"client_address": client_address})
                    OTP_REQUESTS.labels(outcome="rate_limited_ip").inc()
                    raise RateLimited(reason="ip")

                code = generate_code()
                await replace_verification_request(session, destination, code, now + CODE_TTL_MS)
                await record_send_attempt(session, destination, client_address, now)

        try:
            await self.sender.send(destination, self.subject, render_code_email(code))
        except ExternalSendFailure:
            OTP_REQUESTS.labels(outcome="send_failed").inc()
            raise
        except Exception as exc:
            logger.exception("otp.request.send_failed", extra={"destination": destination})
            OTP_REQUESTS.labels(outcome="send_failed").inc()
            raise ExternalSendFailure() from exc

        OTP_REQUESTS.labels(outcome="sent").inc()
        logger.info("otp.request.sent", extra={"destination": destination, "client_address": client_address})

    async def verify_code(self, destination: str, code: str) -> None:
        now = self.clock()

        async with self.session_maker() as session:
            async with session.begin():
                consumed = await consume_verification_request(session, destination, code, now)
                if not consumed:
                    logger.info("otp.verify.rejected", extra={"destination": destination})
                    raise InvalidOrExpired()
                await mark_verified(session, destination)

        logger.info("otp.verify.success", extra={"destination": destination})
