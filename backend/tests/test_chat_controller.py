import asyncio
import json

import aiohttp
import pytest

from parley.client.chat_controller import ChatStreamController, ControllerState, SSELineBuffer

from .fakes import FakeHTTPResponse, FakeHTTPSession


BASE = "http://parley.test"


def sse(*events):
    return "".join(f"data: {json.dumps(e)}\n\n" for e in events).encode("utf-8")


def chunk(text):
    return {"type": "chunk", "data": {"id": "c", "model": "gemini-2.5-flash", "delta": {"content": text}}}


COMPLETE = {"type": "complete", "provider": "google"}


def empty_thread(**overrides):
    thread = {
        "uuid": "thread-1",
        "title": "New Conversation",
        "messages": [],
        "llm_provider": "google",
        "llm_model_version": "gemini-2.5-flash",
    }
    thread.update(overrides)
    return thread


def confirmed_thread(user_text, reply):
    return empty_thread(title="Greetings", messages=[
        {"id": "1", "type": "user", "content": user_text, "timestamp": "2024-01-01T00:00:00.000Z"},
        {"id": "2", "type": "gemini-2.5-flash", "content": reply, "timestamp": "2024-01-01T00:00:01.000Z"},
    ])


class Server:
    """Routes fake requests; `stream` is the SSE body split into network reads."""

    def __init__(self, stream_reads=(), stream_status=200, stream_error=None, persist_status=200):
        self.stream_reads = list(stream_reads)
        self.stream_status = stream_status
        self.stream_error = stream_error
        self.persist_status = persist_status
        self.persisted = []

    def __call__(self, method, url, kwargs):
        params = kwargs.get("params") or {}
        if url == f"{BASE}/api/chat" and params.get("updateTitle") == "true":
            return FakeHTTPResponse(json_data={"success": True, "title": "Greetings"})
        if url == f"{BASE}/api/chat":
            if self.stream_error is not None:
                raise self.stream_error
            return FakeHTTPResponse(status=self.stream_status, reads=self.stream_reads)
        if method == "POST" and url == f"{BASE}/chat/thread-1":
            form = kwargs["data"]
            self.persisted.append(form)
            return FakeHTTPResponse(
                status=self.persist_status,
                json_data={"currentThread": confirmed_thread(form["message"], form["ai_response"])}
            )
        raise AssertionError(f"unexpected request {method} {url}")


def controller_for(server, thread=None):
    session = FakeHTTPSession(server)
    return ChatStreamController(BASE, thread or empty_thread(), session=session), session


def test_line_buffer_reassembles_split_lines():
    buffer = SSELineBuffer()
    body = sse(chunk("Hé"), COMPLETE)
    payloads = []
    for i in range(len(body)):
        payloads.extend(buffer.feed(body[i:i + 1]))
    assert [json.loads(p)["type"] for p in payloads] == ["chunk", "complete"]
    assert json.loads(payloads[0])["data"]["delta"]["content"] == "Hé"


async def test_streamed_reply_is_accumulated_and_persisted_once():
    body = sse(chunk("Hel"), chunk("lo"), COMPLETE)
    server = Server(stream_reads=[body[:25], body[25:60], body[60:]])
    controller, session = controller_for(server)

    state = await controller.submit("Hi there")

    assert state == ControllerState.RECONCILED
    assert server.persisted == [{
        "message": "Hi there",
        "ai_response": "Hello",
        "is_streamed": "true",
        "provider": "google",
    }]
    assert controller.optimistic_messages == []
    assert [m["content"] for m in controller.all_messages] == ["Hi there", "Hello"]
    assert controller.title == "Greetings"
    assert controller.input_text == ""

    stream_request = next(r for r in session.requests if r[2].get("params") == {"stream": "true"})
    assert stream_request[2]["json"]["messages"] == [{"role": "user", "content": "Hi there"}]
    assert stream_request[2]["json"]["provider"] == "google"


async def test_history_maps_model_messages_to_assistant():
    server = Server(stream_reads=[sse(chunk("ok"), COMPLETE)])
    thread = confirmed_thread("Hi", "Hello")
    controller, session = controller_for(server, thread)

    await controller.submit("And again")

    stream_request = next(r for r in session.requests if r[2].get("params") == {"stream": "true"})
    assert [m["role"] for m in stream_request[2]["json"]["messages"]] == ["user", "assistant", "user"]
    assert not any(r[2].get("params") == {"updateTitle": "true"} for r in session.requests)


async def test_failed_stream_open_rolls_back():
    server = Server(stream_status=500)
    controller, _ = controller_for(server)

    state = await controller.submit("Hi there")

    assert state == ControllerState.ROLLED_BACK
    assert controller.all_messages == []
    assert server.persisted == []


async def test_transport_error_rolls_back():
    server = Server(stream_error=aiohttp.ClientConnectionError("refused"))
    controller, _ = controller_for(server)

    assert await controller.submit("Hi there") == ControllerState.ROLLED_BACK
    assert controller.optimistic_messages == []


async def test_error_event_keeps_user_message_and_skips_persist():
    body = sse(chunk("Hel"), {"type": "error", "error": "quota exceeded"})
    server = Server(stream_reads=[b"data: {broken\n\n" + body])
    controller, _ = controller_for(server)

    state = await controller.submit("Hi there")

    assert state == ControllerState.COMPOSING
    assert server.persisted == []
    assert [m["content"] for m in controller.optimistic_messages] == ["Hi there"]
    assert controller.last_error == "quota exceeded"


async def test_malformed_line_mid_stream_is_skipped():
    body = sse(chunk("Hel")) + b"data: {not json\n\n" + sse(chunk("lo"), COMPLETE)
    server = Server(stream_reads=[body])
    controller, _ = controller_for(server)

    state = await controller.submit("Hi there")

    assert state == ControllerState.RECONCILED
    assert len(server.persisted) == 1
    assert server.persisted[0]["ai_response"] == "Hello"
    assert controller.last_error is None


async def test_timeout_mid_stream_returns_to_composing():
    server = Server(stream_reads=[sse(chunk("Hel")), asyncio.TimeoutError()])
    controller, session = controller_for(server)

    state = await controller.submit("Hi there")

    assert state == ControllerState.COMPOSING
    assert not controller.is_busy
    assert server.persisted == []
    assert [m["content"] for m in controller.optimistic_messages] == ["Hi there"]
    assert controller.last_error == "Request timed out"
    # The title request still ran to completion.
    assert controller.title == "Greetings"

    server.stream_reads = [sse(chunk("Hello"), COMPLETE)]
    assert await controller.submit("Try again") == ControllerState.RECONCILED
    assert server.persisted[0]["message"] == "Try again"


async def test_unexpected_error_mid_stream_does_not_leave_controller_busy():
    server = Server(stream_reads=[sse(chunk("Hel")), RuntimeError("decoder exploded")])
    controller, _ = controller_for(server)

    with pytest.raises(RuntimeError):
        await controller.submit("Hi there")

    assert controller.state == ControllerState.COMPOSING
    assert controller.title == "Greetings"



async def test_blank_and_reentrant_submits_are_ignored():
    controller, session = controller_for(Server())

    assert await controller.submit("   ") == ControllerState.COMPOSING
    controller.state = ControllerState.STREAMING
    assert await controller.submit("Hi") == ControllerState.STREAMING
    assert session.requests == []


async def test_placeholder_until_first_text():
    controller, _ = controller_for(Server())
    controller.state = ControllerState.STREAMING
    assert controller.show_placeholder
    controller.streaming_message = "H"
    assert not controller.show_placeholder


async def test_auto_submit_from_url_fires_once():
    server = Server(stream_reads=[sse(chunk("Hello"), COMPLETE)])
    controller, _ = controller_for(server)
    url = f"{BASE}/chat/thread-1?message=Hi%20there&lang=en"

    assert await controller.auto_submit_from_url(url) is True
    assert controller.current_url == f"{BASE}/chat/thread-1?lang=en"
    assert await controller.auto_submit_from_url(url) is False
    assert len(server.persisted) == 1
    assert server.persisted[0]["message"] == "Hi there"


async def test_auto_submit_skips_threads_with_messages():
    server = Server()
    controller, session = controller_for(server, confirmed_thread("Hi", "Hello"))

    assert await controller.auto_submit_from_url(f"{BASE}/chat/thread-1?message=again") is False
    assert session.requests == []
