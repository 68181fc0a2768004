import asyncio

import pytest
from prometheus_client import REGISTRY

from src.verifier.domain.errors import StorageError
from src.verifier.domain.messages import CanonicalMessage
from src.verifier.domain.verification_models import ClientMessage, VerificationIntent
from src.verifier.infrastructure.verification_store import InMemoryVerificationStore
from src.verifier.services.chunk_protocol import encode_chunk
from src.verifier.services.completion_pipeline import CompletionPipeline
from src.verifier.services.context_builder import build_context

from .utils import FailingStore, FakeChatModel


async def _setup(fragments, error=None, content="Is this covered?"):
    store = InMemoryVerificationStore()
    session = await store.create_session("ORD-1", VerificationIntent.RETURN, "desc")
    model = FakeChatModel(fragments, error=error)
    ctx = build_context(session.intent, [ClientMessage(role="user", content=content)])
    return store, session, model, CompletionPipeline(store, model), ctx


async def _roles(store, session):
    return [(m.role, m.content) for m in await store.list_messages(session.session_id)]


@pytest.mark.asyncio
async def test_clean_completion_persists_one_assistant_message():
    fragments = ['{"status": "APPROVED"}', "\nProdukt ", "jest nowy."]
    store, session, model, pipeline, ctx = await _setup(fragments)

    chunks = [c async for c in await pipeline.start(session, ctx)]

    assert chunks == [encode_chunk(f) for f in fragments]
    assert await _roles(store, session) == [
        ("user", "Is this covered?"),
        ("assistant", "".join(fragments)),
    ]


@pytest.mark.asyncio
async def test_user_message_is_stored_before_model_is_called():
    store = InMemoryVerificationStore()
    session = await store.create_session("ORD-1", VerificationIntent.RETURN, "desc")
    seen = {}

    async def record():
        seen["messages"] = await _roles(store, session)

    model = FakeChatModel(["ok"], on_call=record)
    ctx = build_context(session.intent, [ClientMessage(role="user", content="hello")])
    stream = await CompletionPipeline(store, model).start(session, ctx)
    assert await _roles(store, session) == [("user", "hello")]

    _ = [c async for c in stream]
    assert seen["messages"] == [("user", "hello")]


@pytest.mark.asyncio
async def test_assistant_message_written_only_after_last_chunk_is_consumed():
    store, session, model, pipeline, ctx = await _setup(["a", "b"])
    stream = await pipeline.start(session, ctx)

    assert await stream.__anext__() == encode_chunk("a")
    assert await stream.__anext__() == encode_chunk("b")
    assert [r for r, _ in await _roles(store, session)] == ["user"]

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert [r for r, _ in await _roles(store, session)] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_cancelled_stream_persists_no_assistant_message():
    store, session, model, pipeline, ctx = await _setup(["partial ", "answer ", "never stored"])
    stream = await pipeline.start(session, ctx)

    assert await stream.__anext__() == encode_chunk("partial ")
    await stream.aclose()

    assert await _roles(store, session) == [("user", "Is this covered?")]


@pytest.mark.asyncio
async def test_task_cancellation_persists_no_assistant_message():
    store = InMemoryVerificationStore()
    session = await store.create_session("ORD-1", VerificationIntent.RETURN, "desc")
    started = asyncio.Event()

    class SlowModel:
        async def stream(self, messages):
            yield "first"
            started.set()
            await asyncio.sleep(3600)
            yield "unreachable"

    pipeline = CompletionPipeline(store, SlowModel())
    ctx = build_context(session.intent, [ClientMessage(role="user", content="q")])
    stream = await pipeline.start(session, ctx)

    async def consume():
        return [c async for c in stream]

    task = asyncio.create_task(consume())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [r for r, _ in await _roles(store, session)] == ["user"]


@pytest.mark.asyncio
async def test_model_failure_propagates_and_keeps_user_message():
    store, session, model, pipeline, ctx = await _setup(["half"], error=ConnectionError("backend down"))
    stream = await pipeline.start(session, ctx)

    received = []
    with pytest.raises(ConnectionError):
        async for chunk in stream:
            received.append(chunk)

    assert received == [encode_chunk("half")]
    assert await _roles(store, session) == [("user", "Is this covered?")]


@pytest.mark.asyncio
async def test_empty_output_persists_nothing():
    store, session, model, pipeline, ctx = await _setup(["", ""])
    chunks = [c async for c in await pipeline.start(session, ctx)]
    assert chunks == []
    assert [r for r, _ in await _roles(store, session)] == ["user"]


@pytest.mark.asyncio
async def test_unencodable_fragment_is_dropped_but_stream_continues():
    store, session, model, pipeline, ctx = await _setup(["ok ", "bad \ud800", "done"])
    chunks = [c async for c in await pipeline.start(session, ctx)]
    assert chunks == [encode_chunk("ok "), encode_chunk("done")]


@pytest.mark.asyncio
async def test_stream_without_user_turn_only_streams():
    store = InMemoryVerificationStore()
    session = await store.create_session("ORD-1", VerificationIntent.RETURN, "desc")
    model = FakeChatModel(["x"])
    pipeline = CompletionPipeline(store, model)
    messages = [CanonicalMessage(role="system", text="sys")]
    chunks = [c async for c in pipeline.stream(session, messages)]
    assert chunks == ['0:"x"\n']
    assert model.calls[0] == messages


@pytest.mark.asyncio
async def test_dropped_fragment_is_not_part_of_stored_answer():
    store, session, model, pipeline, ctx = await _setup(["ok ", "bad \ud800", "done"])
    _ = [c async for c in await pipeline.start(session, ctx)]
    assert (await _roles(store, session))[-1] == ("assistant", "ok done")


def _stream_outcomes():
    return {
        outcome: REGISTRY.get_sample_value("verifier_streams_total", {"outcome": outcome}) or 0.0
        for outcome in ("completed", "failed", "cancelled")
    }


@pytest.mark.asyncio
async def test_closing_the_stream_closes_the_model_stream():
    store, session, model, pipeline, ctx = await _setup(["one ", "two"])
    stream = await pipeline.start(session, ctx)

    await stream.__anext__()
    await stream.aclose()

    assert model.closed


@pytest.mark.asyncio
async def test_assistant_write_failure_ends_stream_with_storage_error():
    store = FailingStore("assistant_message")
    session = await store.create_session("ORD-1", VerificationIntent.RETURN, "desc")
    pipeline = CompletionPipeline(store, FakeChatModel(["a", "b"]))
    ctx = build_context(session.intent, [ClientMessage(role="user", content="q")])
    before = _stream_outcomes()

    received = []
    with pytest.raises(StorageError):
        async for chunk in await pipeline.start(session, ctx):
            received.append(chunk)

    after = _stream_outcomes()
    assert received == [encode_chunk("a"), encode_chunk("b")]
    assert [r for r, _ in await _roles(store, session)] == ["user"]
    assert after["failed"] - before["failed"] == 1.0
    assert after["completed"] == before["completed"]


@pytest.mark.asyncio
async def test_clean_completion_is_counted_as_completed():
    store, session, model, pipeline, ctx = await _setup(["fine"])
    before = _stream_outcomes()

    _ = [c async for c in await pipeline.start(session, ctx)]

    assert _stream_outcomes()["completed"] - before["completed"] == 1.0
