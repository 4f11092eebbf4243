import uuid
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from orcachat.common.custom_exceptions import Conflict
from orcachat.schema.full_schema import Users
from orcachat.auth.constants import logger


async def user_by_email(session,email):
    stmt=select(Users.id,Users.public_id,Users.email,Users.password_hash,Users.verified).where(Users.email==email)
    result=await session.execute(stmt)
    return result.first()


async def insert_user(session,email: str,password_hash: str):
    user = Users(email=email, password_hash=password_hash)
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("user.duplicate.email", extra={"email": email})
        raise Conflict("Email already used", code="EMAIL_TAKEN")
    return user


async def mark_verified(session,email: str) -> int:
    stmt=update(Users).where(Users.email==email).values(verified=True)
    res=await session.execute(stmt)
    return res.rowcount


async def identify_user_by_pid(session,user_pid) -> Optional[int]:
    try:
        public_id = uuid.UUID(str(user_pid))
    except ValueError:
        return None
    stmt=select(Users.id).where(Users.public_id==public_id)
    res=await session.execute(stmt)
    return res.scalar_one_or_none()
