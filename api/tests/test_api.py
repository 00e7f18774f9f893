"""End-to-end tests through the HTTP layer."""

from fastapi.testclient import TestClient

from inkpress.auth.permissions import UserRole


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _create_post(client: TestClient, headers: dict, **overrides) -> dict:
    payload = {
        "title": "Hello Inkpress",
        "content": "A body that is comfortably longer than ten characters.",
        "status": "published",
        "tags": "news, python",
    }
    payload.update(overrides)
    response = client.post("/v1/posts", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthEndpoints:
    """Signup, login and token handling."""

    def test_signup_and_me(self, client: TestClient, signup) -> None:
        user = signup()
        response = client.get("/v1/auth/me", headers=user["headers"])
        assert response.status_code == 200
        assert response.json()["email"] == user["email"]
        assert "password_hash" not in response.json()

    def test_duplicate_email(self, client: TestClient, signup) -> None:
        signup(email="dup@example.com")
        response = client.post(
            "/v1/auth/signup",
            json={"name": "Other", "email": "DUP@example.com", "password": "secret1"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "email_exists"

    def test_privileged_signup_without_key(self, client: TestClient) -> None:
        response = client.post(
            "/v1/auth/signup",
            json={
                "name": "Sneaky",
                "email": "sneaky@example.com",
                "password": "secret1",
                "role": "super_admin",
            },
        )
        assert response.status_code == 403

    def test_login(self, client: TestClient, signup) -> None:
        user = signup()
        response = client.post(
            "/v1/auth/login",
            json={"email": user["email"], "password": "secret-password"},
        )
        assert response.status_code == 200
        assert response.json()["token_type"] == "Bearer"

    def test_login_wrong_password(self, client: TestClient, signup) -> None:
        user = signup()
        response = client.post(
            "/v1/auth/login", json={"email": user["email"], "password": "nope"}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["code"] == "invalid_credentials"

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/v1/auth/me")
        assert response.status_code == 401

    def test_malformed_token(self, client: TestClient) -> None:
        response = client.get(
            "/v1/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "malformed_token"

    def test_validation_error_shape(self, client: TestClient) -> None:
        response = client.post(
            "/v1/auth/signup",
            json={"name": "A", "email": "bad", "password": "x"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "validation_error"
        assert {d["field"] for d in body["details"]} >= {"email", "password"}


class TestPostEndpoints:
    def test_member_cannot_create(self, client: TestClient, signup) -> None:
        member = signup()
        response = client.post(
            "/v1/posts",
            json={"title": "Nope", "content": "Not allowed to write this."},
            headers=member["headers"],
        )
        assert response.status_code == 403

    def test_create_read_list(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        post = _create_post(client, admin["headers"])

        assert post["slug"] == "hello-inkpress"
        assert sorted(t["name"] for t in post["tags"]) == ["news", "python"]

        read = client.get(f"/v1/posts/{post['slug']}").json()
        assert read["view_count"] == 1
        assert read["content"] is not None

        listing = client.get("/v1/posts", params={"tag": "python"}).json()
        assert listing["total_posts"] == 1
        assert listing["posts"][0]["content"] is None

        tags = client.get("/v1/tags").json()
        assert {t["slug"]: t["post_count"] for t in tags} == {"news": 1, "python": 1}

    def test_draft_visibility(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        member = signup()
        post = _create_post(client, admin["headers"], status="draft")

        assert client.get(f"/v1/posts/{post['id']}").status_code == 404
        assert (
            client.get(f"/v1/posts/{post['id']}", headers=member["headers"]).status_code
            == 404
        )
        assert (
            client.get(f"/v1/posts/{post['id']}", headers=admin["headers"]).status_code
            == 200
        )

    def test_update_and_delete(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        post = _create_post(client, admin["headers"])

        response = client.put(
            f"/v1/posts/{post['id']}",
            json={"title": "Renamed Post", "tags": ["python"]},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert response.json()["slug"] == "renamed-post"

        response = client.delete(f"/v1/posts/{post['id']}", headers=admin["headers"])
        assert response.status_code == 200
        assert client.get(f"/v1/posts/{post['id']}").status_code == 404

    def test_like(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        member = signup()
        post = _create_post(client, admin["headers"])

        response = client.post(f"/v1/posts/{post['id']}/like", headers=member["headers"])
        assert response.status_code == 200
        assert response.json()["like_count"] == 1

    def test_ai_not_configured(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        post = _create_post(client, admin["headers"])

        response = client.post(f"/v1/posts/{post['id']}/summarize")
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"


class TestCommentEndpoints:
    def test_thread_flow(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        member = signup()
        post = _create_post(client, admin["headers"])

        top = client.post(
            f"/v1/comments/post/{post['id']}",
            json={"content": "First!"},
            headers=member["headers"],
        )
        assert top.status_code == 201
        top_id = top.json()["id"]

        reply = client.post(
            f"/v1/comments/{top_id}/reply",
            json={"content": "Welcome"},
            headers=admin["headers"],
        )
        assert reply.status_code == 201

        listing = client.get(f"/v1/comments/post/{post['id']}").json()
        assert listing["total_comments"] == 1
        assert listing["comments"][0]["replies"][0]["content"] == "Welcome"
        assert client.get(f"/v1/posts/{post['id']}").json()["comment_count"] == 1

        response = client.delete(f"/v1/comments/{top_id}", headers=member["headers"])
        assert response.status_code == 200
        assert client.get(f"/v1/comments/post/{post['id']}").json()["comments"] == []
        assert client.get(f"/v1/posts/{post['id']}").json()["comment_count"] == 0

    def test_other_member_cannot_edit(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        author = signup()
        stranger = signup()
        post = _create_post(client, admin["headers"])
        comment = client.post(
            f"/v1/comments/post/{post['id']}",
            json={"content": "mine"},
            headers=author["headers"],
        ).json()

        response = client.put(
            f"/v1/comments/{comment['id']}",
            json={"content": "hijacked"},
            headers=stranger["headers"],
        )
        assert response.status_code == 403

    def test_moderation(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        member = signup()
        post = _create_post(client, admin["headers"])
        comment = client.post(
            f"/v1/comments/post/{post['id']}",
            json={"content": "spammy"},
            headers=member["headers"],
        ).json()
        url = f"/v1/comments/{comment['id']}/moderation"

        response = client.put(url, json={"action": "reject"}, headers=member["headers"])
        assert response.status_code == 403

        response = client.put(url, json={"action": "reject"}, headers=admin["headers"])
        assert response.status_code == 200
        assert response.json()["status"] == "spam"

        response = client.put(url, json={"action": "approve"}, headers=admin["headers"])
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_transition"

        queue = client.get(
            "/v1/admin/comments", params={"status": "spam"}, headers=admin["headers"]
        ).json()
        assert queue["total"] == 1

    def test_empty_comment_rejected(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        post = _create_post(client, admin["headers"])
        response = client.post(
            f"/v1/comments/post/{post['id']}",
            json={"content": "   "},
            headers=admin["headers"],
        )
        assert response.status_code == 400


class TestAdminEndpoints:
    def test_dashboard_requires_admin(self, client: TestClient, signup) -> None:
        member = signup()
        admin = signup(UserRole.ADMIN)
        assert (
            client.get("/v1/admin/dashboard-metrics", headers=member["headers"]).status_code
            == 403
        )
        response = client.get("/v1/admin/dashboard-metrics", headers=admin["headers"])
        assert response.status_code == 200
        metrics = response.json()
        assert metrics["total_members"] == 1
        assert metrics["total_admins"] == 1

    def test_role_change_super_admin_only(self, client: TestClient, signup) -> None:
        root = signup(UserRole.SUPER_ADMIN)
        admin = signup(UserRole.ADMIN)
        member = signup()
        url = f"/v1/superadmin/users/{member['id']}/role"

        response = client.put(url, json={"role": "admin"}, headers=admin["headers"])
        assert response.status_code == 403
        response = client.put(url, json={"role": "admin"}, headers=root["headers"])
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_demoted_admin_loses_live_authority(self, client: TestClient, signup) -> None:
        """Destructive actions re-check the stored role, not the token."""
        root = signup(UserRole.SUPER_ADMIN)
        admin = signup(UserRole.ADMIN)
        member = signup()

        client.put(
            f"/v1/superadmin/users/{admin['id']}/role",
            json={"role": "member"},
            headers=root["headers"],
        )
        response = client.put(
            f"/v1/admin/users/{member['id']}/status",
            json={"is_active": False},
            headers=admin["headers"],
        )
        assert response.status_code == 403

    def test_demoted_admin_cannot_touch_content(self, client: TestClient, signup) -> None:
        """Post and comment admin actions use the stored role too."""
        root = signup(UserRole.SUPER_ADMIN)
        admin = signup(UserRole.ADMIN)
        member = signup()
        post = _create_post(client, admin["headers"])
        comment = client.post(
            f"/v1/comments/post/{post['id']}",
            json={"content": "keep me"},
            headers=member["headers"],
        ).json()

        client.put(
            f"/v1/superadmin/users/{admin['id']}/role",
            json={"role": "member"},
            headers=root["headers"],
        )
        stale = admin["headers"]

        assert client.put(
            f"/v1/posts/{post['id']}", json={"title": "Taken over"}, headers=stale
        ).status_code == 403
        assert client.delete(f"/v1/posts/{post['id']}", headers=stale).status_code == 403
        assert client.put(
            f"/v1/comments/{comment['id']}/moderation",
            json={"action": "reject"},
            headers=stale,
        ).status_code == 403
        assert client.put(
            f"/v1/comments/{comment['id']}", json={"content": "edited"}, headers=stale
        ).status_code == 403
        assert client.delete(f"/v1/comments/{comment['id']}", headers=stale).status_code == 403

        listing = client.get(f"/v1/comments/post/{post['id']}").json()
        assert listing["comments"][0]["content"] == "keep me"

    def test_deactivated_admin_cannot_delete_posts(self, client: TestClient, signup) -> None:
        root = signup(UserRole.SUPER_ADMIN)
        admin = signup(UserRole.ADMIN)
        post = _create_post(client, admin["headers"])

        client.put(
            f"/v1/admin/users/{admin['id']}/status",
            json={"is_active": False},
            headers=root["headers"],
        )
        response = client.delete(f"/v1/posts/{post['id']}", headers=admin["headers"])
        assert response.status_code == 401
        assert client.get(f"/v1/posts/{post['id']}").status_code == 200

    def test_deactivated_user_locked_out(self, client: TestClient, signup) -> None:
        admin = signup(UserRole.ADMIN)
        member = signup()
        response = client.put(
            f"/v1/admin/users/{member['id']}/status",
            json={"is_active": False},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert client.get("/v1/auth/me", headers=member["headers"]).status_code == 401

    def test_delete_user_cascade(self, client: TestClient, signup) -> None:
        root = signup(UserRole.SUPER_ADMIN)
        writer = signup(UserRole.ADMIN)
        _create_post(client, writer["headers"])
        url = f"/v1/superadmin/users/{writer['id']}"

        assert client.delete(url, headers=root["headers"]).status_code == 400
        response = client.delete(url, params={"cascade": True}, headers=root["headers"])
        assert response.status_code == 200
        assert client.get("/v1/posts").json()["total_posts"] == 0

    def test_reconcile(self, client: TestClient, signup) -> None:
        root = signup(UserRole.SUPER_ADMIN)
        response = client.post("/v1/superadmin/system/reconcile", headers=root["headers"])
        assert response.status_code == 200
        assert response.json()["orphans_removed"] == 0


class TestUploadEndpoints:
    def test_profile_upload_served(self, client: TestClient, signup) -> None:
        member = signup()
        response = client.post(
            "/v1/uploads/profile",
            files={"profile_image": ("me.png", PNG, "image/png")},
            headers=member["headers"],
        )
        assert response.status_code == 200
        url = response.json()["image_url"]
        assert url.startswith("/uploads/profiles/")

        served = client.get(url)
        assert served.status_code == 200
        assert served.content == PNG

    def test_disguised_upload_rejected(self, client: TestClient, signup) -> None:
        member = signup()
        response = client.post(
            "/v1/uploads/profile",
            files={"profile_image": ("shell.png", b"<?php system(); ?>", "image/png")},
            headers=member["headers"],
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_image"

    def test_too_many_files(self, client: TestClient, signup) -> None:
        member = signup()
        files = [("images", (f"{i}.png", PNG, "image/png")) for i in range(6)]
        response = client.post("/v1/uploads/multiple", files=files, headers=member["headers"])
        assert response.status_code == 400
        assert response.json()["code"] == "too_many_files"

    def test_post_cover_requires_admin(self, client: TestClient, signup) -> None:
        member = signup()
        response = client.post(
            "/v1/uploads/post-cover",
            files={"cover_image": ("c.png", PNG, "image/png")},
            headers=member["headers"],
        )
        assert response.status_code == 403
