import json

import pytest

from parley.ai.manager import AIManager
from parley.errors import (
    AuthError,
    NotFoundError,
    ProviderUnavailableError,
    SummaryParseError,
    ThreadConflictError,
)
from parley.models.user import User
from parley.schemas.thread import StoredMessage
from parley.schemas.user import SessionData
from parley.services.summarize_service import (
    SummaryItem,
    SummarizeService,
    merge_summaries,
    parse_summaries,
)
from parley.services.thread_store import ThreadStore

from .fakes import FakeAIClient, InterleavedStore


LONG_QUESTION = "Please explain how tides work. " * 10
LONG_ANSWER = "Tides are caused by the moon's gravity acting on the oceans. " * 6


def test_parse_tolerates_fences_and_prose():
    reply = 'Sure!\n```json\n[{"id": "m1", "type": "user", "summary": "About tides"}]\n```'
    items = parse_summaries(reply)
    assert [(i.id, i.summary) for i in items] == [("m1", "About tides")]


def test_parse_skips_unusable_items():
    reply = json.dumps([
        {"id": "m1", "summary": "kept"},
        {"summary": "no way to match"},
        {"id": "m2"},
        "not an object",
        {"type": "user", "timestamp": "2024-01-01T00:00:00.000Z", "summary": "kept by key"},
    ])
    assert [i.summary for i in parse_summaries(reply)] == ["kept", "kept by key"]


@pytest.mark.parametrize("reply, message", [
    ("", "No response from AI model"),
    ("I could not do that", "Failed to parse AI response"),
    ("[not json]", "Failed to parse AI response"),
    ('{"summary": "x"}', "AI response is not an array"),
])
def test_parse_failures(reply, message):
    with pytest.raises(SummaryParseError) as excinfo:
        parse_summaries(reply)
    assert excinfo.value.message == message


def test_merge_by_id_then_by_type_and_timestamp():
    messages = [
        StoredMessage(id="m1", type="user", content=LONG_QUESTION, timestamp="t1"),
        StoredMessage(id="m2", type="gemini-2.5-flash", content=LONG_ANSWER, timestamp="t2"),
        StoredMessage(id="m3", type="user", content="short", timestamp="t3"),
        StoredMessage(id="m4", type="user", content="old", summary="already there", timestamp="t4"),
    ]
    merged = merge_summaries(messages, [
        SummaryItem(id="m1", summary="tides question"),
        SummaryItem(type="gemini-2.5-flash", timestamp="t2", summary="tides answer"),
    ])

    assert [m.summary for m in merged] == ["tides question", "tides answer", "short", "already there"]
    assert [m.id for m in merged] == ["m1", "m2", "m3", "m4"]


@pytest.fixture
async def owner(db):
    user = User(email="ada@example.com", name="Ada", oauth_id="g-1", oauth_type="google")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
def requester(owner):
    return SessionData(user_id=owner.id, email=owner.email, name=owner.name, oauth_type="google")


async def make_thread(db, owner, messages, public=False):
    store = ThreadStore(db)
    thread = await store.create(owner.id, messages=messages, is_public=public)
    return thread


def summarizer(db, settings, reply):
    google = FakeAIClient("google", reply=reply)
    return SummarizeService(db, AIManager({"google": google}), settings), google


async def test_long_messages_get_provider_summaries(db, settings, owner, requester):
    thread = await make_thread(db, owner, [
        StoredMessage(id="q", type="user", content=LONG_QUESTION),
        StoredMessage(id="a", type="gemini-2.5-flash", content=LONG_ANSWER),
        StoredMessage(id="s", type="user", content="Thanks!"),
    ])
    reply = json.dumps([
        {"id": "q", "type": "user", "summary": "Asks how tides work."},
        {"id": "a", "type": "gemini-2.5-flash", "summary": "Moon gravity pulls the oceans."},
    ])
    service, google = summarizer(db, settings, reply)

    result = await service.summarize(thread.uuid, requester)

    stored = ThreadStore.load_messages(result.thread)
    assert [m.summary for m in stored] == [
        "Asks how tides work.",
        "Moon gravity pulls the oceans.",
        "Thanks!",
    ]
    assert result.summaries_generated == 2
    prompt = google.calls[0][1][0].content
    assert '"id": "q"' in prompt and "Thanks!" not in prompt
    assert google.calls[0][2].model == settings.SUMMARY_MODEL


async def test_summary_merge_keeps_a_message_appended_meanwhile(db, settings, owner, requester):
    thread = await make_thread(db, owner, [StoredMessage(id="q", type="user", content=LONG_QUESTION)])
    service, _ = summarizer(db, settings, json.dumps([{"id": "q", "summary": "Asks how tides work."}]))
    service.store = InterleavedStore(db, ThreadStore(db), writes=1)

    result = await service.summarize(thread.uuid, requester)

    stored = ThreadStore.load_messages(result.thread)
    assert [(m.content, m.summary) for m in stored] == [
        (LONG_QUESTION, "Asks how tides work."),
        ("other 0", "other 0"),
    ]


async def test_summary_merge_gives_up_after_write_retries(db, settings, owner, requester):
    thread = await make_thread(db, owner, [StoredMessage(id="q", type="user", content=LONG_QUESTION)])
    service, _ = summarizer(db, settings, json.dumps([{"id": "q", "summary": "Asks how tides work."}]))
    service.store = InterleavedStore(db, ThreadStore(db), writes=3, write_retries=3)

    with pytest.raises(ThreadConflictError):
        await service.summarize(thread.uuid, requester)



async def test_short_messages_skip_the_provider(db, settings, owner, requester):
    thread = await make_thread(db, owner, [
        StoredMessage(type="user", content="Hi"),
        StoredMessage(type="gemini-2.5-flash", content="Hello! How can I help?"),
    ])
    service, google = summarizer(db, settings, "unused")

    result = await service.summarize(thread.uuid, requester)

    assert google.calls == []
    assert [m.summary for m in ThreadStore.load_messages(result.thread)] == ["Hi", "Hello! How can I help?"]


async def test_empty_thread(db, settings, owner, requester):
    thread = await make_thread(db, owner, [])
    service, _ = summarizer(db, settings, "unused")

    result = await service.summarize(thread.uuid, requester)
    assert result.message == "No messages to summarize"


async def test_unparseable_reply_writes_nothing(db, settings, owner, requester):
    thread = await make_thread(db, owner, [StoredMessage(type="user", content=LONG_QUESTION)])
    service, _ = summarizer(db, settings, "I cannot summarize this.")

    with pytest.raises(SummaryParseError) as excinfo:
        await service.summarize(thread.uuid, requester)

    assert excinfo.value.to_dict()["aiResponse"] == "I cannot summarize this."
    reloaded = await ThreadStore(db).get_by_uuid(thread.uuid)
    assert reloaded.version == thread.version
    assert ThreadStore.load_messages(reloaded)[0].summary is None


async def test_missing_summary_provider_is_503(db, settings, owner, requester):
    thread = await make_thread(db, owner, [StoredMessage(type="user", content=LONG_QUESTION)])
    service = SummarizeService(db, AIManager({"openai": FakeAIClient("openai")}), settings)

    with pytest.raises(ProviderUnavailableError) as excinfo:
        await service.summarize(thread.uuid, requester)
    assert excinfo.value.status_code == 503


async def test_other_users_private_thread_is_forbidden(db, settings, owner):
    thread = await make_thread(db, owner, [StoredMessage(type="user", content="Hi")])
    stranger = SessionData(user_id=owner.id + 1, email="x@example.com", name="X", oauth_type="google")
    service, _ = summarizer(db, settings, "unused")

    with pytest.raises(AuthError) as excinfo:
        await service.summarize(thread.uuid, stranger)
    assert excinfo.value.status_code == 403

    with pytest.raises(NotFoundError):
        await service.summarize("no-such-thread", stranger)
