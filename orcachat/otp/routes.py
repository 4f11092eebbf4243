from fastapi import APIRouter, Depends
from orcachat.auth.dependencies import normalize_email_address
from orcachat.common.utils import success_response
from orcachat.otp.dependencies import client_address, get_code_issuer
from orcachat.otp.issuer import ThrottledCodeIssuer
from orcachat.otp.models import SendOtpIn, VerifyOtpIn
from orcachat.otp.constants import logger

otp_router = APIRouter()


@otp_router.post("/send-otp")
async def send_otp(payload: SendOtpIn, address: str = Depends(client_address),
                   issuer: ThrottledCodeIssuer = Depends(get_code_issuer)):

    email = normalize_email_address(payload.email)
    logger.info("otp.request.attempt", extra={"destination": email, "client_address": address})

    await issuer.request_code(email, address)
    return success_response({"ok": True}, 200)


@otp_router.post("/verify-otp")
async def verify_otp(payload: VerifyOtpIn, issuer: ThrottledCodeIssuer = Depends(get_code_issuer)):

    email = normalize_email_address(payload.email)
    await issuer.verify_code(email, payload.code)
    return success_response({"ok": True}, 200)
