"""
Route tests for blog posts, comments, likes and taxonomies.
"""

import pytest

from shared.errors import AuthenticationError

from service_cms_gateway.app.adapters.wordpress_client import WordPressPage

SESSION_TOKEN = "session-jwt"


@pytest.fixture
def contributor(cms_client):
    cms_client.get_current_user.return_value = {"id": 5, "email": "writer@example.com", "roles": ["contributor"]}


@pytest.fixture
def editor(cms_client):
    cms_client.get_current_user.return_value = {"id": 6, "email": "editor@example.com", "roles": ["editor"]}


def _tag_search(name, token=None):
    return [{"id": 11, "name": "Ternate"}] if name == "Ternate" else []


def test_list_posts_is_public(client, cms_client):
    """Test post listing without a session."""
    cms_client.list_items.return_value = WordPressPage(items=[{"id": 1}], total="7", total_pages="4")

    response = client.get("/api/posts?per_page=2&categories=3")

    assert response.status_code == 200
    assert response.json() == [{"id": 1}]
    assert response.headers["X-WP-Total"] == "7"
    assert response.headers["X-WP-TotalPages"] == "4"
    cms_client.list_items.assert_awaited_once_with(
        "posts", [("per_page", "2"), ("categories", "3")], token=None
    )


def test_list_posts_forwards_session(client, cms_client, session_headers):
    cms_client.list_items.return_value = WordPressPage(items=[])

    client.get("/api/posts?status=draft", headers=session_headers)

    assert cms_client.list_items.call_args.kwargs["token"] == SESSION_TOKEN


def test_create_post_as_contributor(client, cms_client, session_headers, contributor):
    """Contributors cannot publish or invent tags."""
    cms_client.search_tags.side_effect = _tag_search
    cms_client.create_item.return_value = {"id": 99, "status": "pending"}

    response = client.post(
        "/api/posts",
        json={
            "title": "<b>Festival Legu</b>",
            "content": "Body",
            "status": "publish",
            "tags": ["Ternate", "new-tag"],
            "categories": "3,4,x",
        },
        headers=session_headers,
    )

    assert response.status_code == 201
    assert response.json()["code"] == "POST_CREATED"
    assert response.json()["data"] == {"id": 99, "status": "pending"}
    cms_client.create_tag.assert_not_awaited()
    cms_client.create_item.assert_awaited_once_with(
        "posts",
        {
            "title": {"raw": "Festival Legu"},
            "content": {"raw": "Body"},
            "status": "pending",
            "tags": [11],
            "categories": [3, 4],
        },
        token=SESSION_TOKEN,
    )


def test_create_post_as_editor(client, cms_client, session_headers, editor):
    cms_client.search_tags.side_effect = _tag_search
    cms_client.create_tag.return_value = {"id": 12, "name": "new-tag"}
    cms_client.create_item.return_value = {"id": 100, "status": "publish"}

    response = client.post(
        "/api/posts",
        json={"title": "Festival Legu", "status": "published", "tags": "Ternate,new-tag"},
        headers=session_headers,
    )

    assert response.status_code == 201
    cms_client.create_tag.assert_awaited_once_with("new-tag", token=SESSION_TOKEN)
    payload = cms_client.create_item.call_args.args[1]
    assert payload["tags"] == [11, 12]
    assert payload["status"] == "publish"


def test_create_post_requires_title(client, cms_client, session_headers, contributor):
    response = client.post("/api/posts", json={"content": "Body"}, headers=session_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_REQUIRED_FIELDS"
    cms_client.create_item.assert_not_awaited()


def test_create_post_requires_session(client, cms_client):
    response = client.post("/api/posts", json={"title": "x"})

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_MISSING_TOKEN"
    cms_client.get_current_user.assert_not_awaited()


def test_create_post_with_expired_session(client, cms_client, session_headers):
    cms_client.get_current_user.side_effect = AuthenticationError("jwt_auth_invalid_token")

    response = client.post("/api/posts", json={"title": "x"}, headers=session_headers)

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "AUTH_INVALID_SESSION"
    assert body["message"] == "Session is invalid or has expired."


def test_create_post_when_cms_returns_no_user_id(client, cms_client, session_headers):
    cms_client.get_current_user.return_value = {"email": "ghost@example.com", "roles": ["editor"]}

    response = client.post("/api/posts", json={"title": "x"}, headers=session_headers)

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_INVALID_SESSION"
    cms_client.create_item.assert_not_awaited()


def test_update_post_drops_categories_for_contributor(client, cms_client, session_headers, contributor):
    cms_client.update_item.return_value = {"id": 99}

    response = client.put(
        "/api/posts/99", json={"title": "Edited", "categories": [1]}, headers=session_headers
    )

    assert response.status_code == 200
    assert response.json()["code"] == "POST_UPDATED"
    cms_client.update_item.assert_awaited_once_with(
        "posts", 99, {"title": {"raw": "Edited"}, "status": "pending"}, token=SESSION_TOKEN
    )


def test_update_post_invalid_id(client, session_headers, contributor):
    response = client.put("/api/posts/abc", json={"title": "Edited"}, headers=session_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_POST_ID"


def test_delete_post(client, cms_client, session_headers, editor):
    cms_client.delete_item.return_value = {"deleted": True, "previous": {"id": 99}}

    response = client.delete("/api/posts/99", headers=session_headers)

    assert response.status_code == 200
    assert response.json()["data"]["deleted"] is True
    cms_client.delete_item.assert_awaited_once_with("posts", 99, token=SESSION_TOKEN, force=True)


def test_comments(client, cms_client):
    cms_client.list_comments.return_value = [{"id": 1, "content": {"rendered": "Nice"}}]

    response = client.get("/api/posts/99/comments")

    assert response.status_code == 200
    assert response.json() == [{"id": 1, "content": {"rendered": "Nice"}}]
    cms_client.list_comments.assert_awaited_once_with(99)


def test_create_comment(client, cms_client, session_headers, contributor):
    cms_client.create_comment.return_value = {"id": 3, "post": 99}

    response = client.post(
        "/api/posts/99/comments",
        json={"content": " <script>alert(1)</script>Nice write-up "},
        headers=session_headers,
    )

    assert response.status_code == 201
    cms_client.create_comment.assert_awaited_once_with(99, {"content": "Nice write-up"}, token=SESSION_TOKEN)


def test_create_empty_comment(client, cms_client, session_headers, contributor):
    response = client.post("/api/posts/99/comments", json={"content": "<b></b>"}, headers=session_headers)

    assert response.status_code == 400
    assert response.json()["errors"] == ["Field 'content' is required"]
    cms_client.create_comment.assert_not_awaited()


def test_toggle_like(client, cms_client, session_headers, contributor):
    cms_client.toggle_like.return_value = {"liked": True, "likesCount": 3, "user": 5}

    response = client.post("/api/posts/99/like", headers=session_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"liked": True, "likesCount": 3}
    cms_client.toggle_like.assert_awaited_once_with(99, token=SESSION_TOKEN)


@pytest.mark.parametrize("path, taxonomy", [
    ("/api/categories", "categories"),
    ("/api/tags", "tags"),
])
def test_terms(client, cms_client, path, taxonomy):
    cms_client.list_terms.return_value = [{"id": 1, "name": "Sejarah", "count": 4}]

    response = client.get(path)

    assert response.status_code == 200
    assert response.json() == [{"id": 1, "name": "Sejarah", "count": 4}]
    cms_client.list_terms.assert_awaited_once_with(taxonomy)
