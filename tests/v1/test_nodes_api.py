# tests/v1/test_nodes_api.py
"""Tests for the forum, topic, reply and node endpoints."""

from typing import Any

import pytest
from fastapi import status

from canopy.api.v1.dependencies import get_settings
from canopy.core.settings import Settings
from canopy.models.meta import META_AUTHOR_IP


def _registered(user_id: int = 2) -> dict[str, Any]:
    return {"kind": "registered", "user_id": user_id}


def _anonymous(name: str = "Alice", **extra: Any) -> dict[str, Any]:
    return {"kind": "anonymous", "name": name, "email": f"{name.lower()}@example.com", **extra}


@pytest.fixture()
def tree(client) -> dict[str, int]:
    """Create a forum holding one topic through the API."""
    forum = client.post("/api/v1/forums/", json={"title": "General"})
    assert forum.status_code == status.HTTP_201_CREATED
    forum_id = forum.json()["node_id"]

    topic = client.post(
        f"/api/v1/forums/{forum_id}/topics",
        json={"title": "Welcome", "content": "Say hi", "author": _registered(1)},
    )
    assert topic.status_code == status.HTTP_201_CREATED
    return {"forum_id": forum_id, "topic_id": topic.json()["node_id"]}


def _reply(client, topic_id: int, content: str = "Hello", author: dict | None = None):
    return client.post(
        f"/api/v1/topics/{topic_id}/replies",
        json={"content": content, "author": author or _registered()},
    )


def test_post_reply_updates_aggregates(client, tree) -> None:
    response = _reply(client, tree["topic_id"])

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "publish"
    assert data["node"]["kind"] == "reply"
    assert data["propagation"]["updated"] == [tree["topic_id"], tree["forum_id"]]

    topic = client.get(f"/api/v1/nodes/{tree['topic_id']}").json()
    assert topic["aggregate"]["reply_count"] == 1
    assert topic["aggregate"]["last_reply_id"] == data["node_id"]

    forum = client.get(f"/api/v1/nodes/{tree['forum_id']}").json()
    assert forum["aggregate"]["reply_count"] == 1
    assert forum["aggregate"]["last_topic_id"] == tree["topic_id"]


def test_anonymous_reply_uses_client_address(client, repo, tree) -> None:
    response = _reply(client, tree["topic_id"], author=_anonymous())

    assert response.status_code == status.HTTP_201_CREATED
    reply_id = response.json()["node_id"]
    assert repo.get_field(reply_id, META_AUTHOR_IP) == "testclient"


def test_reply_to_missing_topic_returns_404(client) -> None:
    response = _reply(client, 424242)

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_invalid_author_is_rejected(client, tree) -> None:
    response = _reply(client, tree["topic_id"], author={"kind": "registered", "user_id": 0})

    assert response.status_code == 422


def test_duplicate_reply_returns_409(client, tree) -> None:
    assert _reply(client, tree["topic_id"], "Same").status_code == status.HTTP_201_CREATED

    response = _reply(client, tree["topic_id"], "Same")

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["reason"] == "duplicate"


def test_flood_returns_429(app, client, tree) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(throttle_time_seconds=60)

    assert _reply(client, tree["topic_id"], "One").status_code == status.HTTP_201_CREATED
    response = _reply(client, tree["topic_id"], "Two")

    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert response.json()["reason"] == "flood"


def test_throttle_exempt_user_may_post_rapidly(app, client, tree) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(
        throttle_time_seconds=60, throttle_exempt_user_ids=[7]
    )

    assert _reply(client, tree["topic_id"], "One", _registered(7)).status_code == 201
    assert _reply(client, tree["topic_id"], "Two", _registered(7)).status_code == 201


def test_spam_toggle_and_explicit_status(client, tree) -> None:
    reply_id = _reply(client, tree["topic_id"]).json()["node_id"]

    spammed = client.post(f"/api/v1/nodes/{reply_id}/spam")
    assert spammed.status_code == status.HTTP_200_OK
    assert spammed.json()["status"] == "spam"
    topic = client.get(f"/api/v1/nodes/{tree['topic_id']}").json()
    assert topic["aggregate"]["reply_count_hidden"] == 1

    again = client.post(f"/api/v1/nodes/{reply_id}/status", json={"target": "spam"})
    assert again.status_code == status.HTTP_409_CONFLICT

    restored = client.post(f"/api/v1/nodes/{reply_id}/spam")
    assert restored.json()["status"] == "publish"


def test_trash_actions(client, tree) -> None:
    reply_id = _reply(client, tree["topic_id"]).json()["node_id"]

    trashed = client.post(f"/api/v1/nodes/{reply_id}/trash")
    assert trashed.json()["status"] == "trash"

    untrashed = client.post(f"/api/v1/nodes/{reply_id}/trash", params={"action": "untrash"})
    assert untrashed.json()["status"] == "publish"

    bogus = client.post(f"/api/v1/nodes/{reply_id}/trash", params={"action": "shred"})
    assert bogus.status_code == 422

    deleted = client.post(f"/api/v1/nodes/{reply_id}/trash", params={"action": "delete"})
    assert deleted.status_code == status.HTTP_200_OK
    assert deleted.json()["status"] == "deleted"
    assert deleted.json()["node"] is None
    assert client.get(f"/api/v1/nodes/{reply_id}").status_code == status.HTTP_404_NOT_FOUND


def test_forum_status_change_is_a_conflict(client, tree) -> None:
    response = client.post(f"/api/v1/nodes/{tree['forum_id']}/spam")

    assert response.status_code == status.HTTP_409_CONFLICT


def test_edit_with_revision_log(client, tree) -> None:
    reply_id = _reply(client, tree["topic_id"], "Helo").json()["node_id"]

    response = client.put(
        f"/api/v1/replies/{reply_id}",
        json={
            "content": "Hello",
            "author": _registered(),
            "edit_reason": "spelling",
            "log_revision": True,
        },
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["node"]["content"] == "Hello"
    revisions = client.get(f"/api/v1/nodes/{reply_id}/revisions").json()
    assert len(revisions) == 1
    assert revisions[0]["author_id"] == 2
    assert revisions[0]["reason"] == "spelling"


def test_refresh_and_reconcile(client, tree) -> None:
    _reply(client, tree["topic_id"])

    refreshed = client.post(f"/api/v1/nodes/{tree['topic_id']}/refresh")
    assert refreshed.status_code == status.HTTP_200_OK
    assert refreshed.json()["full_refresh"] is True
    assert refreshed.json()["updated"] == [tree["topic_id"], tree["forum_id"]]

    missing = client.post("/api/v1/nodes/424242/refresh").json()
    assert missing["leaf_missing"] is True
    assert missing["updated"] == []

    reconciled = client.post("/api/v1/nodes/reconcile")
    assert reconciled.status_code == status.HTTP_200_OK
    assert reconciled.json()[0]["leaf_id"] == tree["topic_id"]


def test_revisions_of_missing_node_return_404(client) -> None:
    response = client.get("/api/v1/nodes/424242/revisions")

    assert response.status_code == status.HTTP_404_NOT_FOUND
