"""Follow and like toggles, comment editing"""

from conftest import change_status, create_ticket


def kind(res):
    return res.json()["data"]["kind"]


def test_follow_is_idempotent(client, citizen, other_citizen):
    ticket = create_ticket(client, citizen.headers)
    path = f"/api/feedback/{ticket['id']}/follow"

    first = client.post(path, json={"follow": True}, headers=other_citizen.headers).json()["data"]
    second = client.post(path, json={"follow": True}, headers=other_citizen.headers).json()["data"]
    assert first == second == {"isFollowing": True, "followerCount": 1}

    data = client.post(path, json={"follow": False}, headers=other_citizen.headers).json()["data"]
    assert data == {"isFollowing": False, "followerCount": 0}


def test_follow_toggles_without_intent(client, citizen, other_citizen):
    ticket = create_ticket(client, citizen.headers)
    path = f"/api/feedback/{ticket['id']}/follow"

    assert client.post(path, headers=other_citizen.headers).json()["data"]["isFollowing"] is True
    assert client.post(path, headers=other_citizen.headers).json()["data"]["isFollowing"] is False

    data = client.get(f"/api/feedback/{ticket['id']}").json()["data"]
    assert data["followers"] == []
    assert data["followerCount"] == 0


def test_author_cannot_follow_own_ticket(client, citizen):
    ticket = create_ticket(client, citizen.headers)
    res = client.post(f"/api/feedback/{ticket['id']}/follow", json={"follow": True}, headers=citizen.headers)
    assert res.status_code == 400
    assert kind(res) == "SelfFollowNotAllowed"


def test_follow_requires_session(client, citizen):
    ticket = create_ticket(client, citizen.headers)
    res = client.post(f"/api/feedback/{ticket['id']}/follow")
    assert res.status_code == 401


def test_cannot_start_following_closed_ticket(client, citizen, other_citizen, admin):
    ticket = create_ticket(client, citizen.headers)
    path = f"/api/feedback/{ticket['id']}/follow"
    client.post(path, json={"follow": True}, headers=other_citizen.headers)
    change_status(client, ticket["id"], admin.headers, "closed", "duplicate")

    res = client.post(path, json={"follow": True}, headers=admin.headers)
    assert kind(res) == "TicketClosed"

    res = client.post(path, json={"follow": False}, headers=other_citizen.headers)
    assert res.status_code == 200
    assert res.json()["data"]["followerCount"] == 0


def test_ticket_like_counts(client, citizen, other_citizen):
    ticket = create_ticket(client, citizen.headers)
    path = f"/api/feedback/{ticket['id']}/like"

    client.post(path, json={"like": True}, headers=citizen.headers)
    data = client.post(path, json={"like": True}, headers=other_citizen.headers).json()["data"]
    assert data == {"hasLiked": True, "likesCount": 2}

    data = client.post(path, json={"like": True}, headers=other_citizen.headers).json()["data"]
    assert data["likesCount"] == 2

    ticket = client.get(f"/api/feedback/{ticket['id']}").json()["data"]
    assert ticket["likes"] == 2
    assert sorted(ticket["likedBy"]) == sorted([citizen.id, other_citizen.id])


def test_comment_and_response_likes(client, citizen, other_citizen, water_staff):
    ticket = create_ticket(client, citizen.headers)
    comment = client.post(
        f"/api/feedback/{ticket['id']}/comments", json={"message": "Same here"}, headers=other_citizen.headers,
    ).json()["data"]
    response = client.post(
        f"/api/feedback/{ticket['id']}/responses", json={"message": "Team dispatched"}, headers=water_staff.headers,
    ).json()["data"]

    res = client.post(f"/api/comments/{comment['commentId']}/like", headers=citizen.headers)
    assert res.json()["data"] == {"hasLiked": True, "likesCount": 1}
    res = client.post(f"/api/responses/{response['responseId']}/like", json={"like": True}, headers=citizen.headers)
    assert res.json()["data"] == {"hasLiked": True, "likesCount": 1}

    data = client.get(f"/api/feedback/{ticket['id']}").json()["data"]
    assert data["comments"][0]["likes"] == 1
    assert data["responses"][0]["likedBy"] == [citizen.id]
    assert data["likes"] == 0

    res = client.post("/api/comments/9999/like", headers=citizen.headers)
    assert res.status_code == 404


def test_comment_edit_and_delete(client, citizen, other_citizen, admin):
    ticket = create_ticket(client, citizen.headers)
    comment = client.post(
        f"/api/feedback/{ticket['id']}/comments", json={"message": "Typo hree"}, headers=other_citizen.headers,
    ).json()["data"]
    path = f"/api/comments/{comment['commentId']}"

    res = client.patch(path, json={"message": "Hijacked"}, headers=citizen.headers)
    assert res.status_code == 403

    res = client.patch(path, json={"message": "Typo here"}, headers=other_citizen.headers)
    assert res.json()["data"]["message"] == "Typo here"

    res = client.delete(path, headers=admin.headers)
    assert res.status_code == 200

    data = client.get(f"/api/feedback/{ticket['id']}").json()["data"]
    assert data["comments"] == []


def test_anonymous_author_comments_are_redacted(client, citizen, other_citizen):
    ticket = create_ticket(client, citizen.headers, isAnonymous=True)
    client.post(f"/api/feedback/{ticket['id']}/comments", json={"message": "Any news?"}, headers=citizen.headers)

    data = client.get(f"/api/feedback/{ticket['id']}", headers=other_citizen.headers).json()["data"]
    assert data["comments"][0]["authorName"] == "Anonymous"
    assert data["comments"][0]["authorId"] is None

    data = client.get(f"/api/feedback/{ticket['id']}", headers=citizen.headers).json()["data"]
    assert data["comments"][0]["authorId"] == citizen.id


def test_anonymous_author_likes_are_hidden(client, citizen, other_citizen, water_staff):
    ticket = create_ticket(client, citizen.headers, isAnonymous=True)
    path = f"/api/feedback/{ticket['id']}"
    client.post(f"{path}/like", json={"like": True}, headers=citizen.headers)
    response = client.post(
        f"{path}/responses", json={"message": "Team dispatched"}, headers=water_staff.headers,
    ).json()["data"]
    client.post(f"/api/responses/{response['responseId']}/like", json={"like": True}, headers=citizen.headers)

    for headers in ({}, other_citizen.headers):
        data = client.get(path, headers=headers).json()["data"]
        assert data["likes"] == 1
        assert data["likedBy"] == []
        assert data["responses"][0]["likes"] == 1
        assert data["responses"][0]["likedBy"] == []

    listed = client.get("/api/feedback", headers=other_citizen.headers).json()["data"]["items"]
    assert citizen.id not in listed[0]["likedBy"]

    data = client.get(path, headers=water_staff.headers).json()["data"]
    assert data["likedBy"] == [citizen.id]


def test_replies_must_target_the_same_ticket(client, citizen, other_citizen):
    first = create_ticket(client, citizen.headers)
    second = create_ticket(client, citizen.headers, title="Another outage")
    parent = client.post(
        f"/api/feedback/{first['id']}/comments", json={"message": "Same here"}, headers=other_citizen.headers,
    ).json()["data"]

    res = client.post(
        f"/api/feedback/{first['id']}/comments",
        json={"message": "Thanks for confirming", "parentId": parent["commentId"]},
        headers=citizen.headers,
    )
    assert res.json()["data"]["parentId"] == parent["commentId"]

    res = client.post(
        f"/api/feedback/{second['id']}/comments",
        json={"message": "Wrong thread", "parentId": parent["commentId"]},
        headers=citizen.headers,
    )
    assert res.status_code == 404
