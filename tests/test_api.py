"""Integration tests for the REST routes and the /events WebSocket."""

from __future__ import annotations

from conftest import make_post_body
from domain.events import NewPost, PostAnswered, PostUpvoted, event_from_wire


def _create(client, **overrides) -> dict:
    response = client.post("/posts", json=make_post_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateAndFetch:

    def test_create_returns_defaults(self, client) -> None:
        post = _create(client)
        assert post["votes"] == 0
        assert post["isAnswered"] is False
        assert post["replies"] == []
        assert post["id"]

        fetched = client.get(f"/posts/{post['id']}")
        assert fetched.status_code == 200
        assert fetched.json() == post

    def test_empty_field_is_400_with_message(self, client) -> None:
        response = client.post("/posts", json=make_post_body(author="  "))
        assert response.status_code == 400
        assert response.json() == {"message": "Title, content, and author are required"}

    def test_missing_field_is_400(self, client) -> None:
        response = client.post("/posts", json={"title": "t", "content": "c"})
        assert response.status_code == 400
        assert "author" in response.json()["message"]

    def test_unknown_post_is_404(self, client) -> None:
        response = client.get("/posts/nope")
        assert response.status_code == 404
        assert response.json() == {"message": "Post not found"}


class TestMutations:

    def test_reply(self, client) -> None:
        post = _create(client)
        response = client.post(f"/posts/{post['id']}/reply", json={"content": "Use gcloud CLI", "author": "Sarah"})

        assert response.status_code == 201
        replies = response.json()["replies"]
        assert [(r["content"], r["author"]) for r in replies] == [("Use gcloud CLI", "Sarah")]
        assert replies[0]["id"].startswith("reply-")

    def test_reply_validation_and_not_found(self, client) -> None:
        post = _create(client)
        assert client.post(f"/posts/{post['id']}/reply", json={"content": "", "author": "a"}).status_code == 400
        assert client.post("/posts/nope/reply", json={"content": "c", "author": "a"}).status_code == 404

    def test_upvote(self, client) -> None:
        post = _create(client)
        client.post(f"/posts/{post['id']}/upvote")
        response = client.post(f"/posts/{post['id']}/upvote")

        assert response.status_code == 200
        assert response.json()["votes"] == 2
        assert client.post("/posts/nope/upvote").status_code == 404

    def test_mark_answered_toggles(self, client) -> None:
        post = _create(client)
        first = client.post(f"/posts/{post['id']}/mark-answered")
        second = client.post(f"/posts/{post['id']}/mark-answered")

        assert first.status_code == 200
        assert first.json()["isAnswered"] is True
        assert second.json()["isAnswered"] is False
        assert client.post("/posts/nope/mark-answered").status_code == 404


class TestListing:

    def test_sort_by_votes(self, client) -> None:
        ids = {}
        for title, votes in (("five", 5), ("twelve", 12), ("zero", 0)):
            ids[title] = _create(client, title=title)["id"]
            for _ in range(votes):
                client.post(f"/posts/{ids[title]}/upvote")

        response = client.get("/posts", params={"sortBy": "votes"})
        assert response.status_code == 200
        assert [p["votes"] for p in response.json()] == [12, 5, 0]

    def test_default_listing(self, client) -> None:
        _create(client, title="a")
        _create(client, title="b")
        response = client.get("/posts")
        assert response.status_code == 200
        assert {p["title"] for p in response.json()} == {"a", "b"}

    def test_search(self, client) -> None:
        target = _create(client)
        _create(client, title="Best practices for React state management?", author="Priya")

        for q in ("deploy", "DEPLOY"):
            response = client.get("/posts/search/query", params={"q": q})
            assert response.status_code == 200
            assert [p["id"] for p in response.json()] == [target["id"]]

        assert len(client.get("/posts/search/query").json()) == 2


class TestEventStream:

    def test_connected_client_receives_mutations(self, client) -> None:
        with client.websocket_connect("/events") as ws:
            post = _create(client)
            client.post(f"/posts/{post['id']}/upvote")

            first = event_from_wire(ws.receive_json())
            second = event_from_wire(ws.receive_json())

        assert isinstance(first, NewPost)
        assert first.post.id == post["id"]
        assert second == PostUpvoted(postId=post["id"], votes=1)

    def test_failed_mutation_is_not_broadcast(self, client) -> None:
        with client.websocket_connect("/events") as ws:
            assert client.post("/posts/nope/upvote").status_code == 404
            post = _create(client)

            # The first frame is the successful create, not the failed upvote.
            frame = ws.receive_json()

        assert frame["event"] == "newPost"
        assert frame["data"]["id"] == post["id"]

    def test_store_failure_is_500_and_not_broadcast(self, client, monkeypatch) -> None:
        async def failing_increment(post_id: str, field: str):
            raise RuntimeError("backend unavailable")

        with client.websocket_connect("/events") as ws:
            post = _create(client)
            assert ws.receive_json()["event"] == "newPost"

            monkeypatch.setattr(client.app.state.store, "increment_counter", failing_increment)
            response = client.post(f"/posts/{post['id']}/upvote")
            assert response.status_code == 500
            assert response.json() == {"message": "Internal server error while upvoting post"}

            assert client.post(f"/posts/{post['id']}/mark-answered").status_code == 200
            frame = event_from_wire(ws.receive_json())

        assert frame == PostAnswered(postId=post["id"], isAnswered=True)

    def test_health(self, client) -> None:
        assert client.get("/healthz").json() == {"status": "ok"}
