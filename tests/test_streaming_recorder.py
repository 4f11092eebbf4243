import asyncio

import pytest
from orcachat.chat.recorder import StreamingReplayRecorder
from orcachat.chat.repository import list_turns
from orcachat.chat.sinks import ResponseSink, SinkClosed, TeeSink
from orcachat.chat.tasks import drain_inflight_relays, track_relay
from orcachat.common.custom_exceptions import UpstreamError
from orcachat.db.connection import async_session


class CollectingSink:
    def __init__(self, accept: int = None):
        self.fragments = []
        self.closed = False
        self.accept = accept

    async def write(self, fragment):
        if self.accept is not None and len(self.fragments) >= self.accept:
            raise SinkClosed()
        self.fragments.append(fragment)

    async def close(self):
        self.closed = True


class ScriptedModel:
    def __init__(self, fragments, error: Exception = None):
        self.fragments = fragments
        self.error = error
        self.histories = []
        self.finished = False

    async def stream_completion(self, history):
        self.histories.append([dict(t) for t in history])
        try:
            for fragment in self.fragments:
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.finished = True


async def _turns(conversation_id):
    async with async_session() as session:
        return await list_turns(session, conversation_id)


async def test_reply_is_relayed_and_persisted_in_order(conversation_id):
    model = ScriptedModel(["Hel", "lo", ", ", "world"])
    sink = CollectingSink()

    content = await StreamingReplayRecorder(async_session, model).reply_to_turn(conversation_id, "hi", sink)

    assert content == "Hello, world"
    assert "".join(sink.fragments) == "Hello, world"
    assert sink.closed
    assert await _turns(conversation_id) == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello, world"},
    ]


async def test_model_sees_full_history_including_new_turn(conversation_id):
    model = ScriptedModel(["ok"])
    recorder = StreamingReplayRecorder(async_session, model)

    await recorder.reply_to_turn(conversation_id, "first", CollectingSink())
    await recorder.reply_to_turn(conversation_id, "second", CollectingSink())

    assert model.histories[1] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "ok"},
        {"role": "user", "content": "second"},
    ]
    roles = [t["role"] for t in await _turns(conversation_id)]
    assert roles == ["user", "assistant", "user", "assistant"]


async def test_failure_mid_stream_persists_partial_reply(conversation_id):
    model = ScriptedModel(["f1", "f2"], error=RuntimeError("connection reset"))
    sink = CollectingSink()

    with pytest.raises(UpstreamError):
        await StreamingReplayRecorder(async_session, model).reply_to_turn(conversation_id, "hi", sink)

    assert sink.fragments == ["f1", "f2"]
    assert sink.closed
    assert (await _turns(conversation_id))[-1] == {"role": "assistant", "content": "f1f2"}


async def test_upstream_error_is_reraised_unchanged(conversation_id):
    original = UpstreamError("LLM stream failed: APIConnectionError")
    model = ScriptedModel(["x"], error=original)

    with pytest.raises(UpstreamError) as exc_info:
        await StreamingReplayRecorder(async_session, model).reply_to_turn(conversation_id, "hi", CollectingSink())
    assert exc_info.value is original


async def test_empty_reply_still_recorded(conversation_id):
    sink = CollectingSink()

    content = await StreamingReplayRecorder(async_session, ScriptedModel([])).reply_to_turn(conversation_id, "hi", sink)

    assert content == ""
    assert sink.closed
    assert (await _turns(conversation_id))[-1] == {"role": "assistant", "content": ""}


async def test_client_disconnect_keeps_what_was_delivered(conversation_id):
    model = ScriptedModel(["a", "b", "c"])
    sink = CollectingSink(accept=1)

    content = await StreamingReplayRecorder(async_session, model).reply_to_turn(conversation_id, "hi", sink)

    assert content == "a"
    # the model stream is closed rather than left dangling
    assert model.finished
    assert (await _turns(conversation_id))[-1] == {"role": "assistant", "content": "a"}


async def test_tee_captures_only_delivered_fragments():
    live = CollectingSink(accept=2)
    tee = TeeSink(live)

    await tee.write("x")
    await tee.write("y")
    with pytest.raises(SinkClosed):
        await tee.write("z")

    assert tee.captured == "xy"
    await tee.close()
    assert live.closed


async def test_response_sink_drains_in_order_until_closed():
    sink = ResponseSink()
    for fragment in ("one", " two", " three"):
        await sink.write(fragment)
    await sink.close()

    received = [f async for f in sink.iter_fragments()]
    assert received == ["one", " two", " three"]

    with pytest.raises(SinkClosed):
        await sink.write("late")


async def test_response_sink_rejects_writes_after_detach():
    sink = ResponseSink()
    sink.detach()

    assert sink.detached
    with pytest.raises(SinkClosed):
        await sink.write("x")


class StalledModel:
    def __init__(self):
        self.first_sent = asyncio.Event()

    async def stream_completion(self, history):
        yield "partial"
        self.first_sent.set()
        await asyncio.Event().wait()


async def test_drain_cancels_stalled_relay_after_it_persists(conversation_id):
    model = StalledModel()
    recorder = StreamingReplayRecorder(async_session, model)
    history = await recorder.prepare(conversation_id, "hi")
    sink = CollectingSink()

    task = track_relay(asyncio.create_task(recorder.relay(conversation_id, history, sink)))
    await model.first_sent.wait()

    await drain_inflight_relays(timeout=0.05)

    assert task.done() and task.cancelled()
    assert sink.closed
    assert (await _turns(conversation_id))[-1] == {"role": "assistant", "content": "partial"}
