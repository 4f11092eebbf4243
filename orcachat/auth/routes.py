from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import  AsyncSession
from orcachat.auth.dependencies import register_validation
from orcachat.auth.models import RegisterIn, SignIn
from orcachat.auth.services import create_user, issue_auth_token
from orcachat.common.utils import success_response
from orcachat.db.dependencies import get_session
from orcachat.auth.constants import logger

auth_router = APIRouter()


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(payload: RegisterIn = Depends(register_validation), session: AsyncSession = Depends(get_session)):

    logger.info("register.attempt", extra={"email": payload.email})

    await create_user(session,payload)
    return success_response({"ok": True}, 201)


@auth_router.post("/login")
async def login_user(payload: SignIn, session: AsyncSession = Depends(get_session)):

    logger.info("login.attempt", extra={"email": payload.email})

    token=await issue_auth_token(session,payload.email,payload.password)

    logger.info("login.success", extra={"email": payload.email})
    return success_response({"token": token}, 200)
