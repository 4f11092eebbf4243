from orcachat.auth.dependencies import normalize_email_address
from orcachat.auth.repository import insert_user, user_by_email
from orcachat.auth.utils import create_access_token, hash_password, verify_password
from orcachat.common.custom_exceptions import Forbidden, NotFound, Unauthorized
from orcachat.auth.constants import logger


async def create_user(session,payload):

    user = await insert_user(session, payload.email, hash_password(payload.password))
    await session.commit()
    logger.info("user.created", extra={"user_public_id": str(user.public_id), "email": payload.email})
    return user.id


async def issue_auth_token(session,email: str,password: str) -> str:
    email = normalize_email_address(email)
    user=await user_by_email(session,email)

    # login distinguishes the failure causes on purpose, unlike the OTP endpoints
    if not user:
        logger.warning("auth.login.failed", extra={"reason": "user_not_found", "email": email})
        raise NotFound("User not found", code="USER_NOT_FOUND")
    if not user.verified:
        logger.warning("auth.login.failed", extra={"reason": "email_not_verified", "email": email})
        raise Forbidden("Email not verified", code="EMAIL_NOT_VERIFIED")
    if not verify_password(password, user.password_hash):
        logger.warning("auth.login.failed", extra={"reason": "invalid_credentials", "email": email})
        raise Unauthorized("Wrong password", code="INVALID_CREDENTIALS")

    token = create_access_token(user.public_id, user.email)
    logger.info("auth.token.issued", extra={"user_public_id": str(user.public_id)})
    return token
