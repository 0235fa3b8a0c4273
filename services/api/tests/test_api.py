"""Tests for API routes."""

from fastapi.testclient import TestClient

from app.config import Settings

from conftest import VIDEO_URL, auth_headers, register


def analyze(client: TestClient, url: str = VIDEO_URL, headers: dict | None = None, **extra):
    return client.post("/analyses", json={"url": url, **extra}, headers=headers or {})


class TestHealthEndpoint:
    """Test health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test GET /health returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_database_health(self, client: TestClient):
        response = client.get("/health/db")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "responseTime" in data


class TestAuthRouter:
    """Test registration, sign-in and profile."""

    def test_register(self, client: TestClient):
        data = register(client, email="Viewer@Example.com")
        assert data["tokenType"] == "bearer"
        assert data["user"]["email"] == "viewer@example.com"
        assert data["accessToken"]

    def test_register_duplicate(self, client: TestClient):
        register(client)
        response = client.post(
            "/auth/register",
            json={"email": "viewer@example.com", "password": "another-password"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_register_short_password(self, client: TestClient):
        response = client.post("/auth/register", json={"email": "a@example.com", "password": "short"})
        assert response.status_code == 422
        assert response.json()["error_type"] == "validation"

    def test_register_password_over_72_bytes(self, client: TestClient):
        response = client.post("/auth/register", json={"email": "a@example.com", "password": "x" * 73})
        assert response.status_code == 422
        assert response.json()["error_type"] == "validation"

    def test_login(self, client: TestClient):
        register(client)
        response = client.post(
            "/auth/login",
            json={"email": "viewer@example.com", "password": "correct-horse"},
        )
        assert response.status_code == 200
        assert response.json()["accessToken"]

    def test_login_wrong_password(self, client: TestClient):
        register(client)
        response = client.post(
            "/auth/login",
            json={"email": "viewer@example.com", "password": "wrong-horse"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["detail"] == "Invalid email or password"
        assert data["error_type"] == "auth"
        assert "error_id" in data

    def test_me(self, client: TestClient):
        token = register(client)
        analyze(client, headers=auth_headers(token))

        response = client.get("/auth/me", headers=auth_headers(token))
        assert response.status_code == 200
        stats = response.json()["stats"]
        assert stats["totalAnalyses"] == 1
        assert stats["currentUsage"] == 1
        assert stats["remainingUsage"] == 1
        assert len(stats["recentAnalyses"]) == 1

    def test_me_requires_token(self, client: TestClient):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"


class TestUsageRouter:
    """Test free-tier usage endpoints."""

    def test_anonymous_usage(self, client: TestClient):
        response = client.get("/usage")
        assert response.status_code == 200
        data = response.json()
        assert data["usedCount"] == 0
        assert data["remainingCount"] == 2
        assert data["limit"] == 2
        assert data["percentage"] == 0
        assert data["resetAt"].startswith("2026-10-20T00:00:00")
        # Manual clock starts at 15:30 UTC
        assert data["timeUntilReset"] == {"hours": 8, "minutes": 30}

    def test_usage_after_analysis(self, client: TestClient):
        analyze(client)
        data = client.get("/usage").json()
        assert data["usedCount"] == 1
        assert data["remainingCount"] == 1
        assert data["percentage"] == 50
        assert data["lastConsumedAt"] is not None

    def test_usage_per_client_id(self, client: TestClient):
        analyze(client, headers={"X-Client-Id": "browser-a"})
        other = client.get("/usage", headers={"X-Client-Id": "browser-b"}).json()
        assert other["usedCount"] == 0

    def test_authenticated_usage(self, client: TestClient):
        token = register(client)
        data = client.get("/usage", headers=auth_headers(token)).json()
        assert data["usedCount"] == 0
        assert data["limit"] == 2

    def test_reset_forbidden_outside_dev(self, client: TestClient):
        response = client.post("/usage/reset")
        assert response.status_code == 403

    def test_reset_in_dev_mode(self, client: TestClient, monkeypatch):
        monkeypatch.setattr("app.routers.usage.get_settings", lambda: Settings(dev_user_id="dev-user"))
        analyze(client)
        analyze(client)

        response = client.post("/usage/reset")
        assert response.status_code == 200
        assert response.json()["usedCount"] == 0
        assert analyze(client).status_code == 201

    def test_admin_resets_other_user(self, client: TestClient, monkeypatch):
        viewer = register(client, email="viewer@example.com")
        admin = register(client, email="admin@example.com")
        analyze(client, headers=auth_headers(viewer))
        analyze(client, headers=auth_headers(viewer))

        settings = Settings(admin_user_ids=admin["user"]["id"])
        monkeypatch.setattr("app.routers.usage.get_settings", lambda: settings)

        response = client.post(
            "/usage/reset",
            json={"userId": viewer["user"]["id"]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["remainingCount"] == 2
        assert client.get("/usage", headers=auth_headers(viewer)).json()["usedCount"] == 0

    def test_only_admins_reset_other_users(self, client: TestClient, monkeypatch):
        viewer = register(client, email="viewer@example.com")
        monkeypatch.setattr("app.routers.usage.get_settings", lambda: Settings(dev_user_id="dev-user"))

        response = client.post("/usage/reset", json={"userId": "someone-else"}, headers=auth_headers(viewer))
        assert response.status_code == 403

    def test_admin_reset_unknown_user(self, client: TestClient, monkeypatch):
        admin = register(client, email="admin@example.com")
        settings = Settings(admin_user_ids=admin["user"]["id"])
        monkeypatch.setattr("app.routers.usage.get_settings", lambda: settings)

        response = client.post("/usage/reset", json={"userId": "missing"}, headers=auth_headers(admin))
        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"


class TestCreateAnalysis:
    """Test the analysis flow and its free-tier limit."""

    def test_create(self, client: TestClient, transcript_fetcher, video_analyzer):
        response = analyze(client, title="Tiny habits")
        assert response.status_code == 201
        data = response.json()
        assert data["analysis"]["videoId"] == "dQw4w9WgXcQ"
        assert data["analysis"]["title"] == "Tiny habits"
        assert data["analysis"]["keyInsights"] == ["Small habits compound"]
        assert data["analysis"]["userId"] is None
        assert data["usage"]["usedCount"] == 1
        assert data["usage"]["remainingCount"] == 1
        assert transcript_fetcher.calls == ["dQw4w9WgXcQ"]
        assert len(video_analyzer.calls) == 1

    def test_limit_reached(self, client: TestClient, transcript_fetcher):
        """Test the third analysis of the day is refused before any work is done."""
        assert analyze(client).status_code == 201
        assert analyze(client).status_code == 201

        response = analyze(client)

        assert response.status_code == 429
        data = response.json()
        assert data["error_type"] == "rate_limit"
        limits = data["limits"]["analyses"]
        assert (limits["used"], limits["max"], limits["remaining"]) == (2, 2, 0)
        assert limits["resetAt"].startswith("2026-10-20T00:00:00")
        # 15:30 to midnight
        assert data["retry_after"] == 8 * 3600 + 30 * 60
        assert response.headers["Retry-After"] == str(8 * 3600 + 30 * 60)
        assert len(transcript_fetcher.calls) == 2

    def test_limit_resets_next_day(self, client: TestClient, clock):
        analyze(client)
        analyze(client)
        assert analyze(client).status_code == 429

        clock.advance(hours=9)

        assert analyze(client).status_code == 201

    def test_invalid_url_does_not_consume(self, client: TestClient, transcript_fetcher):
        response = analyze(client, url="https://vimeo.com/12345")
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter a valid YouTube URL"
        assert client.get("/usage").json()["usedCount"] == 0
        assert transcript_fetcher.calls == []

    def test_missing_url(self, client: TestClient):
        response = client.post("/analyses", json={})
        assert response.status_code == 422
        data = response.json()
        assert data["detail"] == "Validation error"
        assert data["errors"][0]["field"] == "body.url"
        assert client.get("/usage").json()["usedCount"] == 0

    def test_transcript_unavailable(self, client: TestClient, transcript_fetcher, video_analyzer):
        transcript_fetcher.unavailable = True
        response = analyze(client)
        assert response.status_code == 422
        assert video_analyzer.calls == []
        # Consumption stands even though the analysis did not complete
        assert client.get("/usage").json()["usedCount"] == 1

    def test_video_too_long(self, client: TestClient, transcript_fetcher, video_analyzer):
        transcript_fetcher.duration = 16 * 60
        response = analyze(client)
        assert response.status_code == 422
        assert "15 minutes" in response.json()["detail"]
        assert video_analyzer.calls == []

    def test_analysis_failure(self, client: TestClient, video_analyzer):
        video_analyzer.fail = True
        response = analyze(client)
        assert response.status_code == 502
        assert response.json()["detail"] == "Analysis service failed"

    def test_authenticated_limit(self, client: TestClient):
        token = register(client)
        headers = auth_headers(token)

        results = [analyze(client, headers=headers).status_code for _ in range(3)]

        assert results == [201, 201, 429]
        assert client.get("/usage", headers=headers).json()["remainingCount"] == 0
        # The anonymous counter is separate
        assert client.get("/usage").json()["usedCount"] == 0

    def test_authenticated_analysis_is_owned(self, client: TestClient):
        token = register(client)
        response = analyze(client, headers=auth_headers(token))
        assert response.json()["analysis"]["userId"] == token["user"]["id"]


class TestAnalysesRouter:
    """Test listing, reading and deleting analyses."""

    def test_list_requires_auth(self, client: TestClient):
        response = client.get("/analyses")
        assert response.status_code == 401
        assert response.json()["error_type"] == "auth"

    def test_list(self, client: TestClient):
        token = register(client)
        headers = auth_headers(token)
        analyze(client, headers=headers, title="First")
        analyze(client, headers=headers, title="Second")

        response = client.get("/analyses", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["items"]) == 2
        assert data["hasMore"] is False

    def test_list_paginated_and_search(self, client: TestClient):
        token = register(client)
        headers = auth_headers(token)
        analyze(client, headers=headers, title="Cooking basics")
        analyze(client, headers=headers, title="Running form")

        page = client.get("/analyses?limit=1", headers=headers).json()
        assert page["total"] == 2
        assert page["hasMore"] is True

        found = client.get("/analyses?search=running", headers=headers).json()
        assert [item["title"] for item in found["items"]] == ["Running form"]

    def test_get_and_delete(self, client: TestClient):
        token = register(client)
        headers = auth_headers(token)
        analysis_id = analyze(client, headers=headers).json()["analysis"]["id"]

        response = client.get(f"/analyses/{analysis_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["summary"] == "A short talk about building habits."

        assert client.delete(f"/analyses/{analysis_id}", headers=headers).status_code == 204
        assert client.get(f"/analyses/{analysis_id}", headers=headers).status_code == 404

    def test_other_users_analysis_not_found(self, client: TestClient):
        owner = register(client, email="owner@example.com")
        other = register(client, email="other@example.com")
        analysis_id = analyze(client, headers=auth_headers(owner)).json()["analysis"]["id"]

        response = client.get(f"/analyses/{analysis_id}", headers=auth_headers(other))
        assert response.status_code == 404
        assert client.delete(f"/analyses/{analysis_id}", headers=auth_headers(other)).status_code == 404

    def test_recent(self, client: TestClient):
        analyze(client, title="Public one")
        analyze(client, headers={"X-Client-Id": "someone"})

        response = client.get("/analyses/recent")
        assert response.status_code == 200
        assert [item["title"] for item in response.json()] == ["Public one"]
