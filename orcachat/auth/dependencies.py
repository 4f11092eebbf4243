from email_validator import validate_email, EmailNotValidError
from fastapi import Request
from fastapi.security import HTTPBearer
from orcachat.auth.models import RegisterIn
from orcachat.auth.utils import decode_token
from orcachat.common.custom_exceptions import Unauthorized, ValidationError
from orcachat.auth.constants import logger


def normalize_email_address(email: str) -> str:
    """
    Validate and return normalized email (lowercased, normalized by email-validator).
    Raises ValidationError if invalid. No DNS lookups are made.
    """
    try:
        v = validate_email(email.strip(), check_deliverability=False)
        return v.normalized.lower()
    except EmailNotValidError as e:
        logger.warning("auth.validation.email_invalid", extra={"error": str(e)})
        raise ValidationError(f"Invalid email: {e}")


async def register_validation(payload: RegisterIn) -> RegisterIn:
    return RegisterIn(email=normalize_email_address(payload.email), password=payload.password)


class Authentication(HTTPBearer):
    def __init__(self,auto_error=True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request:Request) -> dict:
        auth_creds=await super().__call__(request)
        decoded_token=decode_token(auth_creds.credentials)

        if not decoded_token or not decoded_token.get("sub"):
            raise Unauthorized("Invalid or expired token provided.", code="INVALID_AUTH")

        return decoded_token
