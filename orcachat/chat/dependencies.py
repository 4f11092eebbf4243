from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from orcachat.chat.recorder import StreamingReplayRecorder
from orcachat.chat.repository import conversation_owner
from orcachat.common.custom_exceptions import NotFound, Unauthorized
from orcachat.db.dependencies import get_session


def current_user_id(request: Request) -> int:
    user_id = getattr(request.state, "user_identifier", None)
    if user_id is None:
        raise Unauthorized("Missing or invalid auth headers", code="INVALID_AUTH")
    return user_id


async def owned_conversation(chat_id: int, user_id: int = Depends(current_user_id),
                             session: AsyncSession = Depends(get_session)) -> int:
    # someone else's conversation looks exactly like a missing one
    owner_id = await conversation_owner(session, chat_id)
    if owner_id is None or owner_id != user_id:
        raise NotFound("Chat not found")
    return chat_id


def get_reply_recorder(request: Request) -> StreamingReplayRecorder:
    return request.app.state.reply_recorder
