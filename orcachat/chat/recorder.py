from contextlib import aclosing
from typing import Dict, List

from orcachat.chat.constants import logger
from orcachat.chat.llm_client import ChatModel, History
from orcachat.chat.repository import append_turn, list_turns
from orcachat.chat.sinks import FragmentSink, SinkClosed, TeeSink
from orcachat.common.custom_exceptions import UpstreamError
from orcachat.schema.full_schema import TurnRole
from metrics.custom_instrumentator import CHAT_STREAMS


class StreamingReplayRecorder:
    """
    Relays a model reply to a live sink while recording it.

    Order within one turn: the user turn is committed, then the model is invoked
    with the full history, then exactly one assistant turn is persisted holding
    whatever reached the sink. That last write happens once the stream is over,
    however it ended (completed, upstream failure, client gone), and an empty
    reply is still recorded.
    """

    def __init__(self, session_maker, model: ChatModel):
        self.session_maker = session_maker
        self.model = model

    async def reply_to_turn(self, conversation_id: int, user_content: str, sink: FragmentSink) -> str:
        history = await self.prepare(conversation_id, user_content)
        return await self.relay(conversation_id, history, sink)

    async def prepare(self, conversation_id: int, user_content: str) -> List[Dict[str, str]]:
        async with self.session_maker() as session:
            await append_turn(session, conversation_id, TurnRole.USER, user_content)
            await session.commit()
            history = await list_turns(session, conversation_id)

        logger.debug("chat.turn.user_recorded", extra={"conversation_id": conversation_id, "history_len": len(history)})
        return history

    async def relay(self, conversation_id: int, history: History, sink: FragmentSink) -> str:
        tee = TeeSink(sink)
        outcome = "completed"
        failure = None

        try:
            async with aclosing(self.model.stream_completion(history)) as fragments:
                async for fragment in fragments:
                    try:
                        await tee.write(fragment)
                    except SinkClosed:
                        outcome = "client_disconnected"
                        logger.info("chat.stream.client_disconnected", extra={"conversation_id": conversation_id})
                        break
        except Exception as exc:
            outcome = "upstream_error"
            failure = exc
            logger.error("chat.stream.upstream_failed",
                         extra={"conversation_id": conversation_id, "captured_chars": len(tee.captured)},
                         exc_info=exc)
        finally:
            content = tee.captured
            try:
                await self._persist_reply(conversation_id, content)
            finally:
                await self._close_sink(sink, conversation_id)

        CHAT_STREAMS.labels(outcome=outcome).inc()
        if failure is not None:
            if isinstance(failure, UpstreamError):
                raise failure
            raise UpstreamError() from failure
        return content

    async def _persist_reply(self, conversation_id: int, content: str) -> None:
        async with self.session_maker() as session:
            await append_turn(session, conversation_id, TurnRole.ASSISTANT, content)
            await session.commit()
        logger.info("chat.stream.persisted", extra={"conversation_id": conversation_id, "reply_chars": len(content)})

    async def _close_sink(self, sink: FragmentSink, conversation_id: int) -> None:
        try:
            await sink.close()
        except Exception:
            logger.exception("chat.stream.sink_close_failed", extra={"conversation_id": conversation_id})
