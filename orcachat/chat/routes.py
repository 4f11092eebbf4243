import asyncio
from typing import Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from orcachat.chat.constants import DEFAULT_CHAT_TITLE, STREAM_MEDIA_TYPE, logger
from orcachat.chat.dependencies import current_user_id, get_reply_recorder, owned_conversation
from orcachat.chat.models import ConversationIn, TurnIn
from orcachat.chat.recorder import StreamingReplayRecorder
from orcachat.chat.repository import create_conversation, list_conversations, list_turns
from orcachat.chat.sinks import ResponseSink
from orcachat.chat.tasks import track_relay
from orcachat.common.utils import success_response
from orcachat.db.dependencies import get_session

chat_router = APIRouter()


@chat_router.post("", status_code=status.HTTP_201_CREATED)
async def new_chat(payload: Optional[ConversationIn] = None, user_id: int = Depends(current_user_id),
                   session: AsyncSession = Depends(get_session)):

    title = (payload.title if payload and payload.title else DEFAULT_CHAT_TITLE)
    chat_id = await create_conversation(session, user_id, title)
    await session.commit()

    logger.info("chat.created", extra={"conversation_id": chat_id})
    return success_response({"chat_id": chat_id}, 201)


@chat_router.get("")
async def get_chats(user_id: int = Depends(current_user_id), session: AsyncSession = Depends(get_session)):
    chats = await list_conversations(session, user_id)
    return success_response(chats, 200)


@chat_router.get("/{chat_id}/messages")
async def get_messages(chat_id: int = Depends(owned_conversation), session: AsyncSession = Depends(get_session)):
    turns = await list_turns(session, chat_id)
    return success_response(turns, 200)


@chat_router.post("/{chat_id}/stream")
async def stream_reply(payload: TurnIn, chat_id: int = Depends(owned_conversation),
                       recorder: StreamingReplayRecorder = Depends(get_reply_recorder)):

    # user turn is committed before anything is streamed; store failures still get a JSON error
    history = await recorder.prepare(chat_id, payload.message)

    sink = ResponseSink()
    track_relay(asyncio.create_task(recorder.relay(chat_id, history, sink)))

    async def body():
        try:
            async for fragment in sink.iter_fragments():
                yield fragment
        finally:
            sink.detach()

    return StreamingResponse(body(), media_type=STREAM_MEDIA_TYPE,
                             headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
