from fastapi import APIRouter
from orcachat.api import version_prefix
from orcachat.auth.routes import auth_router
from orcachat.otp.routes import otp_router
from orcachat.chat.routes import chat_router
from orcachat.common.routes import home_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth",tags=["auth"])
public_routers.include_router(otp_router, prefix="/auth",tags=["otp"])
public_routers.include_router(chat_router, prefix="/chats",tags=["chats"])
public_routers.include_router(home_router,tags=["home"])
