from datetime import datetime, timedelta, timezone
import secrets
from typing import Optional
from passlib.context import CryptContext
from jose import jwt, JWTError
from orcachat.auth.constants import ACCESS_TOKEN_EXPIRE_MINUTES
from orcachat.config.settings import config_settings

pwd_context = CryptContext(schemes=[config_settings.PASS_HASH_SCHEME], deprecated="auto")

def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)

def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(user_public_id, email: str, expires_dur: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    now=datetime.now(timezone.utc)
    expiry= now + timedelta(minutes=expires_dur)

    payload = {
        "sub": str(user_public_id),
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(claims=payload,key=config_settings.JWT_SECRET,algorithm=config_settings.JWT_ALGO)

def decode_token(token:str) -> Optional[dict]:
    """To verify the signature , expiration and user claims of token"""
    try:
        return jwt.decode(
            token,
            key=config_settings.JWT_SECRET,
            algorithms=[config_settings.JWT_ALGO]
        )
    except JWTError:
        return None
