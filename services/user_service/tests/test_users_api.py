"""Tests for User Service API routes."""

from unittest.mock import AsyncMock

import pytest

from services.user_service.app.dependencies import get_import_dispatcher
from services.user_service.app.imports.artifact import ImportOutcome
from services.user_service.app.imports.dispatcher import BulkImportDispatcher
from services.user_service.app.main import app

USER_PASSWORD = "testpassword123"
CSV_BODY = b"email,password,full_name\nnew1@example.com,password123,New One\n"


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "user-service"

    @pytest.mark.asyncio
    async def test_readiness_check(self, test_client):
        response = await test_client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"ready": True, "checks": {"database": True}}

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, test_client):
        await test_client.get("/health")
        response = await test_client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestRequestContext:
    """Tests for correlation ID and locale headers."""

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_correlation_id_generated(self, test_client):
        response = await test_client.get("/health")
        assert response.headers["X-Correlation-ID"]

    @pytest.mark.asyncio
    async def test_content_language(self, test_client):
        response = await test_client.get("/health", headers={"Accept-Language": "vi-VN,vi;q=0.9"})
        assert response.headers["Content-Language"] == "vi"


class TestLogin:
    """Tests for POST /auth/login."""

    @pytest.mark.asyncio
    async def test_login_success(self, test_client, test_user):
        response = await test_client.post(
            "/auth/login",
            json={"email": "Member@Example.com", "password": USER_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0

        profile = await test_client.get(
            "/users/profile",
            headers={"Authorization": f"Bearer {data['access_token']}"},
        )
        assert profile.status_code == 200
        assert profile.json()["email"] == "member@example.com"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, test_client, test_user):
        response = await test_client.post(
            "/auth/login",
            json={"email": "member@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_user(self, test_client, inactive_user):
        response = await test_client.post(
            "/auth/login",
            json={"email": "gone@example.com", "password": USER_PASSWORD},
        )
        assert response.status_code == 401


class TestGuards:
    """Every /users route requires a valid bearer token."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/users/register"),
            ("GET", "/users"),
            ("PATCH", "/users/1"),
            ("GET", "/users/details/1"),
            ("GET", "/users/profile"),
            ("POST", "/users"),
        ],
    )
    async def test_unauthenticated_requests_rejected(self, test_client, method, path):
        response = await test_client.request(method, path)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, test_client, test_user):
        response = await test_client.get(
            "/users/profile",
            headers={"Authorization": "Bearer not.a.token"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user_forbidden(self, test_client, inactive_headers):
        response = await test_client.get("/users/profile", headers=inactive_headers)
        assert response.status_code == 403


class TestRegister:
    """Tests for POST /users/register."""

    @pytest.mark.asyncio
    async def test_register_uses_request_locale(self, test_client, user_headers):
        response = await test_client.post(
            "/users/register",
            json={"email": "Fresh@Example.com", "password": "password123", "full_name": "Fresh"},
            headers={**user_headers, "Accept-Language": "vi"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "fresh@example.com"
        assert data["locale"] == "vi"
        assert data["role"] == "user"
        assert "hashed_password" not in data

    @pytest.mark.asyncio
    async def test_register_unsupported_locale_falls_back(self, test_client, user_headers):
        response = await test_client.post(
            "/users/register",
            json={"email": "other@example.com", "password": "password123"},
            headers={**user_headers, "Accept-Language": "fr-FR"},
        )

        assert response.status_code == 201
        assert response.json()["locale"] == "en"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, test_client, user_headers):
        response = await test_client.post(
            "/users/register",
            json={"email": "member@example.com", "password": "password123"},
            headers=user_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_short_password(self, test_client, user_headers):
        response = await test_client.post(
            "/users/register",
            json={"email": "short@example.com", "password": "short"},
            headers=user_headers,
        )
        assert response.status_code == 422


class TestListUsers:
    """Tests for GET /users."""

    @pytest.mark.asyncio
    async def test_list_all(self, test_client, user_headers, admin_user):
        response = await test_client.get("/users", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {u["email"] for u in data["data"]} == {"member@example.com", "admin@example.com"}
        assert data["has_next"] is False

    @pytest.mark.asyncio
    async def test_filter_by_role(self, test_client, user_headers, admin_user):
        response = await test_client.get("/users", params={"role": "admin"}, headers=user_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["data"][0]["email"] == "admin@example.com"

    @pytest.mark.asyncio
    async def test_keyword_search(self, test_client, user_headers, admin_user):
        response = await test_client.get("/users", params={"keyword": "MEMB"}, headers=user_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["data"][0]["email"] == "member@example.com"

    @pytest.mark.asyncio
    async def test_pagination(self, test_client, user_headers, admin_user):
        response = await test_client.get(
            "/users",
            params={"page": 1, "page_size": 1},
            headers=user_headers,
        )

        data = response.json()
        assert len(data["data"]) == 1
        assert data["has_next"] is True
        assert data["has_previous"] is False

    @pytest.mark.asyncio
    async def test_invalid_page_size(self, test_client, user_headers):
        response = await test_client.get("/users", params={"page_size": 0}, headers=user_headers)
        assert response.status_code == 422


class TestUpdateUser:
    """Tests for PATCH /users/{id}."""

    @pytest.mark.asyncio
    async def test_update_fields_and_avatar(
        self, test_client, user_headers, test_user, mock_storage_client
    ):
        response = await test_client.patch(
            f"/users/{test_user.id}",
            data={"full_name": "Renamed"},
            files={"avatar": ("me.png", b"\x89PNG", "image/png")},
            headers=user_headers,
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "Renamed"
        mock_storage_client.put_object.assert_called_once()
        key = mock_storage_client.put_object.call_args.kwargs["key"]
        assert key.startswith(f"avatars/{test_user.id}/")
        assert key.endswith(".png")

    @pytest.mark.asyncio
    async def test_update_without_avatar(self, test_client, user_headers, test_user, mock_storage_client):
        response = await test_client.patch(
            f"/users/{test_user.id}",
            data={"full_name": "Only Name"},
            headers=user_headers,
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "Only Name"
        mock_storage_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_non_image_avatar(
        self, test_client, user_headers, test_user, mock_storage_client
    ):
        response = await test_client.patch(
            f"/users/{test_user.id}",
            data={"full_name": "Renamed"},
            files={"avatar": ("notes.txt", b"hello", "text/plain")},
            headers=user_headers,
        )

        assert response.status_code == 400
        mock_storage_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_missing_user(self, test_client, user_headers):
        response = await test_client.patch(
            "/users/9999",
            data={"full_name": "Nobody"},
            headers=user_headers,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_short_password(self, test_client, user_headers, test_user):
        response = await test_client.patch(
            f"/users/{test_user.id}",
            data={"password": "short"},
            headers=user_headers,
        )
        assert response.status_code == 422


class TestUserDetails:
    """Tests for GET /users/details/{id}."""

    @pytest.mark.asyncio
    async def test_admin_can_view_details(self, test_client, admin_headers, test_user):
        response = await test_client.get(f"/users/details/{test_user.id}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "member@example.com"
        assert data["avatar_url"] is None
        assert "updated_at" in data

    @pytest.mark.asyncio
    async def test_details_include_avatar_url(
        self, test_client, admin_headers, user_headers, test_user
    ):
        await test_client.patch(
            f"/users/{test_user.id}",
            files={"avatar": ("me.jpg", b"jpeg", "image/jpeg")},
            headers=user_headers,
        )

        response = await test_client.get(f"/users/details/{test_user.id}", headers=admin_headers)

        avatar_url = response.json()["avatar_url"]
        assert avatar_url.startswith(f"http://files.test/avatars/{test_user.id}/")
        assert avatar_url.endswith(".jpg")

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, test_client, user_headers, test_user):
        response = await test_client.get(f"/users/details/{test_user.id}", headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_user(self, test_client, admin_headers):
        response = await test_client.get("/users/details/9999", headers=admin_headers)
        assert response.status_code == 404


class TestProfile:
    """Tests for GET /users/profile."""

    @pytest.mark.asyncio
    async def test_returns_current_user(self, test_client, admin_headers, admin_user):
        response = await test_client.get("/users/profile", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == admin_user.id
        assert data["role"] == "admin"


class TestCsvImport:
    """Tests for POST /users (bulk CSV import)."""

    @pytest.mark.asyncio
    async def test_small_file_is_queued(
        self, test_client, user_headers, mock_import_queue, mock_bulk_create
    ):
        response = await test_client.post(
            "/users",
            files={"userCsv": ("users.csv", CSV_BODY, "text/csv")},
            headers=user_headers,
        )

        assert response.status_code == 202
        assert response.json() == {
            "job_id": "2f1c6a52-job",
            "queue_name": "createUserByCsv",
        }
        mock_import_queue.enqueue.assert_called_once()
        queue_name, artifact = mock_import_queue.enqueue.call_args.args
        assert queue_name == "createUserByCsv"
        assert artifact.filename == "users.csv"
        assert artifact.size_bytes == len(CSV_BODY)
        assert artifact.content == CSV_BODY
        mock_bulk_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_large_file_is_imported_inline(
        self, test_client, user_headers, mock_import_queue
    ):
        bulk_create = AsyncMock(
            return_value=ImportOutcome(created=1)
        )
        app.dependency_overrides[get_import_dispatcher] = lambda: BulkImportDispatcher(
            bulk_create, mock_import_queue, threshold_bytes=10
        )

        response = await test_client.post(
            "/users",
            files={"userCsv": ("users.csv", CSV_BODY, "text/csv")},
            headers=user_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"created": 1, "skipped": 0, "failed": 0, "errors": []}
        bulk_create.assert_called_once()
        mock_import_queue.enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_wrong_media_type_rejected(
        self, test_client, user_headers, mock_import_queue, mock_bulk_create
    ):
        response = await test_client.post(
            "/users",
            files={"userCsv": ("users.csv", CSV_BODY, "application/vnd.ms-excel")},
            headers=user_headers,
        )

        assert response.status_code == 400
        mock_import_queue.enqueue.assert_not_called()
        mock_bulk_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_queue_failure_is_bad_gateway(self, test_client, user_headers, mock_import_queue):
        mock_import_queue.enqueue.side_effect = RuntimeError("sqs endpoint unreachable")

        response = await test_client.post(
            "/users",
            files={"userCsv": ("users.csv", CSV_BODY, "text/csv")},
            headers=user_headers,
        )

        assert response.status_code == 502
        assert response.json() == {"detail": "Bad Gateway"}
        assert "unreachable" not in response.text

    @pytest.mark.asyncio
    async def test_missing_file_field(self, test_client, user_headers):
        response = await test_client.post(
            "/users",
            files={"other": ("users.csv", CSV_BODY, "text/csv")},
            headers=user_headers,
        )
        assert response.status_code == 422
