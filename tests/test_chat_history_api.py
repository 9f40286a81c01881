"""Tests for the /chat/history endpoints."""


def _seed_messages(fakes, count, user_id="user-1"):
    for i in range(count):
        fakes.chat.add_message(f"q{i}", f"a{i}", user_id)


def test_history_page_oldest_first(api_client, fakes):
    _seed_messages(fakes, 3)

    response = api_client.get("/chat/history", params={"limit": 2})

    body = response.json()
    assert [m["question"] for m in body["messages"]] == ["q1", "q2"]
    assert body["total"] == 3
    assert body["hasMore"] is True


def test_history_pages_backwards_with_cursor(api_client, fakes):
    _seed_messages(fakes, 3)
    first = api_client.get("/chat/history", params={"limit": 2}).json()

    cursor = first["messages"][0]["created_at"]
    second = api_client.get("/chat/history", params={"limit": 2, "before": cursor}).json()

    assert [m["question"] for m in second["messages"]] == ["q0"]
    assert second["hasMore"] is False


def test_history_is_scoped_to_user(api_client, fakes):
    _seed_messages(fakes, 2, user_id="user-2")

    body = api_client.get("/chat/history").json()

    assert body == {"messages": [], "total": 0, "hasMore": False}


def test_limit_validation(api_client):
    assert api_client.get("/chat/history", params={"limit": 0}).status_code == 422


def test_clear_history(api_client, fakes):
    _seed_messages(fakes, 3)
    _seed_messages(fakes, 1, user_id="user-2")

    response = api_client.delete("/chat/history")

    assert response.json() == {"message": "Cleared 3 chat messages", "deleted": 3}
    assert fakes.chat.count_messages("user-1") == 0
    assert fakes.chat.count_messages("user-2") == 1
