from .fakes import Visitor


LONG_TEXT = "The moon's gravity raises two bulges of water on opposite sides of the Earth. " * 4


def test_share_returns_link_and_is_idempotent(client):
    owner = Visitor(client)
    thread_uuid = owner.new_thread()

    first = owner.post("/api/share", json={"threadUuid": thread_uuid})
    second = owner.post("/api/share", json={"threadUuid": thread_uuid})

    assert first.status_code == 200
    assert first.json() == {"shareUrl": f"http://testserver/chat/{thread_uuid}"}
    assert second.status_code == 200


def test_share_uses_public_url_when_configured(client, settings):
    settings.PUBLIC_URL = "https://parley.example.com/"
    owner = Visitor(client)
    thread_uuid = owner.new_thread()

    response = owner.post("/api/share", json={"threadUuid": thread_uuid})

    assert response.json()["shareUrl"] == f"https://parley.example.com/chat/{thread_uuid}"


def test_non_owner_cannot_share(client):
    owner = Visitor(client)
    thread_uuid = owner.new_thread()
    stranger = Visitor(client, user_agent="stranger-browser")
    stranger.get("/")

    response = stranger.post("/api/share", json={"threadUuid": thread_uuid})

    assert response.status_code == 403
    assert owner.get(f"/chat/{thread_uuid}").json()["currentThread"]["public"] is False


def test_share_errors(client):
    assert client.post("/api/share", json={"threadUuid": "x"}).status_code == 401

    visitor = Visitor(client)
    visitor.get("/")
    response = visitor.post("/api/share", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Thread UUID is required"
    assert visitor.post("/api/share", json={"threadUuid": "missing"}).status_code == 404


def test_summarize_endpoint(client, google_client):
    google_client.reply = '[{"id": "placeholder", "summary": "unused"}]'
    owner = Visitor(client)
    thread_uuid = owner.new_thread()
    owner.send_streamed(thread_uuid, message="Short question", reply="Short answer")

    response = owner.post("/api/summarize", json={"threadUuid": thread_uuid})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["summariesGenerated"] == 0
    assert [m["summary"] for m in body["thread"]["messages"]] == ["Short question", "Short answer"]
    assert google_client.calls == []


def test_summarize_long_message(client, google_client):
    owner = Visitor(client)
    thread_uuid = owner.new_thread()
    page = owner.send_streamed(thread_uuid, message="Why are there tides?", reply=LONG_TEXT).json()
    reply_id = page["currentThread"]["messages"][1]["id"]
    google_client.reply = f'```json\n[{{"id": "{reply_id}", "summary": "Moon gravity makes two water bulges."}}]\n```'

    body = owner.post("/api/summarize", json={"threadUuid": thread_uuid}).json()

    assert body["summariesGenerated"] == 1
    assert body["thread"]["messages"][1]["summary"] == "Moon gravity makes two water bulges."
    assert body["thread"]["messages"][0]["summary"] == "Why are there tides?"


def test_summarize_bad_reply_is_500_with_raw_response(client, google_client):
    google_client.reply = "Sorry, I can't."
    owner = Visitor(client)
    thread_uuid = owner.new_thread()
    owner.send_streamed(thread_uuid, reply=LONG_TEXT)

    response = owner.post("/api/summarize", json={"threadUuid": thread_uuid})

    assert response.status_code == 500
    assert response.json()["aiResponse"] == "Sorry, I can't."
    messages = owner.get(f"/chat/{thread_uuid}").json()["currentThread"]["messages"]
    assert all(m["summary"] is None for m in messages)


def test_summarize_requires_session(client):
    assert client.post("/api/summarize", json={"threadUuid": "x"}).status_code == 401
