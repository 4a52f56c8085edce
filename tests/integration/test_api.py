"""Tests for API endpoints.

The database is never reached: sessions, services and guards are swapped
through ``app.dependency_overrides``.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient

from app.api.v1.endpoints.admin import get_admin_service
from app.api.v1.endpoints.ai import get_ai_service
from app.api.v1.endpoints.auth import get_auth_service
from app.api.v1.endpoints.contact import get_email_service
from app.api.v1.endpoints.feedback import get_feedback_service
from app.api.v1.endpoints.polls import get_poll_service
from app.api.v1.endpoints.users import get_user_service
from app.core.auth import get_current_user, get_optional_community_context
from app.core.database import get_async_session
from app.core.exceptions import ValidationError
from app.main import app


async def fake_session():
    yield AsyncMock()


class TestRootAndErrors:
    def test_root(self, test_client: TestClient) -> None:
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Server is running"
        assert "X-Correlation-ID" in response.headers

    def test_correlation_id_is_echoed(self, test_client: TestClient) -> None:
        response = test_client.get("/", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_validation_errors_use_error_body(self, test_client: TestClient) -> None:
        response = test_client.post("/api/v1/auth/login", json={})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request"
        assert any(item.startswith("email") for item in data["details"])


class TestAuthentication:
    def test_protected_routes_require_session(self, test_client: TestClient) -> None:
        for method, path in [
            ("get", "/api/v1/user/status"),
            ("get", "/api/v1/user"),
            ("get", "/api/v1/notifications"),
            ("get", "/api/v1/polls"),
            ("get", "/api/v1/auth/session"),
        ]:
            response = getattr(test_client, method)(path)
            assert response.status_code == 401, path
            assert response.json() == {"error": "Unauthorized"}

    def test_garbage_bearer_token_is_rejected(self, test_client: TestClient) -> None:
        response = test_client.get("/api/v1/user/status", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_status_reports_deleted_account(self, test_client: TestClient, current_user) -> None:
        service = AsyncMock()
        service.get_status.return_value = "deleted"
        app.dependency_overrides[get_current_user] = lambda: current_user
        app.dependency_overrides[get_user_service] = lambda: service

        response = test_client.get("/api/v1/user/status")

        assert response.status_code == 200
        assert response.json()["status"] == "deleted"
        service.get_status.assert_awaited_once_with(current_user.id)

    def test_verify_email_rejects_overlong_password(self, test_client: TestClient) -> None:
        service = AsyncMock()
        app.dependency_overrides[get_auth_service] = lambda: service

        response = test_client.post(
            "/api/v1/auth/verify-email",
            json={
                "fullName": "Rita Resident",
                "email": "rita@example.com",
                "password": "Abcdefg1!" * 9,
                "communityCode": "MAPLE1",
                "role": "Resident",
                "code": "123456",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert any("72 bytes" in item for item in response.json()["details"])
        service.verify_email.assert_not_awaited()

    def test_signup_is_rate_limited(self, test_client: TestClient) -> None:
        headers = {"X-Forwarded-For": "203.0.113.7"}
        for _ in range(5):
            assert test_client.post("/api/v1/auth/signup", json={}, headers=headers).status_code == 400

        response = test_client.post("/api/v1/auth/signup", json={}, headers=headers)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["retryAfter"] > 0


class TestAdminGuards:
    def test_resident_cannot_open_admin_routes(self, test_client: TestClient, resident_context) -> None:
        app.dependency_overrides[get_optional_community_context] = lambda: resident_context
        app.dependency_overrides[get_async_session] = fake_session

        for path in ["/api/v1/admin/members", "/api/v1/admin/dashboard", "/api/v1/admin/settings"]:
            response = test_client.get(path)
            assert response.status_code == 403, path
            assert response.json() == {"error": "Admin access required"}

    def test_user_without_community_is_forbidden(self, test_client: TestClient) -> None:
        app.dependency_overrides[get_optional_community_context] = lambda: None
        app.dependency_overrides[get_async_session] = fake_session

        response = test_client.get("/api/v1/admin/members")

        assert response.status_code == 403
        assert response.json() == {"error": "User not in a community"}

    def test_admin_sees_members(self, test_client: TestClient, admin_context) -> None:
        service = AsyncMock()
        service.list_members.return_value = {"members": [], "stats": {"total": 0, "admins": 0, "residents": 0}}
        app.dependency_overrides[get_optional_community_context] = lambda: admin_context
        app.dependency_overrides[get_admin_service] = lambda: service

        response = test_client.get("/api/v1/admin/members")

        assert response.status_code == 200
        assert response.json()["stats"]["total"] == 0


class TestCommunityCode:
    def test_code_lookup_ignores_case(self, test_client: TestClient) -> None:
        community = SimpleNamespace(id=uuid4(), name="Maple Grove", code="MAPLE1")
        app.dependency_overrides[get_async_session] = fake_session

        with patch("app.api.v1.endpoints.community.CommunityRepository") as repository:
            repository.return_value.get_by_code = AsyncMock(return_value=community)
            response = test_client.post("/api/v1/community/validate-code", json={"code": " maple1 "})

        assert response.status_code == 200
        assert response.json()["community"]["code"] == "MAPLE1"
        repository.return_value.get_by_code.assert_awaited_once_with(" maple1 ")

    def test_unknown_code(self, test_client: TestClient) -> None:
        app.dependency_overrides[get_async_session] = fake_session

        with patch("app.api.v1.endpoints.community.CommunityRepository") as repository:
            repository.return_value.get_by_code = AsyncMock(return_value=None)
            response = test_client.post("/api/v1/community/validate-code", json={"code": "NOPE"})

        assert response.status_code == 404
        assert response.json() == {"error": "Invalid community code"}

    def test_missing_code(self, test_client: TestClient) -> None:
        app.dependency_overrides[get_async_session] = fake_session

        response = test_client.post("/api/v1/community/validate-code", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Community code is required"}


class TestPollsAndAi:
    def test_vote_errors_are_rendered(self, test_client: TestClient, current_user, resident_context) -> None:
        service = AsyncMock()
        service.vote.side_effect = ValidationError("Multiple selections not allowed")
        app.dependency_overrides[get_current_user] = lambda: current_user
        app.dependency_overrides[get_optional_community_context] = lambda: resident_context
        app.dependency_overrides[get_poll_service] = lambda: service

        response = test_client.post(
            f"/api/v1/polls/{uuid4()}/vote", json={"optionIds": [str(uuid4()), str(uuid4())]}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Multiple selections not allowed"}

    def test_classify(self, test_client: TestClient, current_user) -> None:
        service = AsyncMock()
        service.classify.return_value = {"category": "maintenance", "confidence": 0.82, "cached": False}
        app.dependency_overrides[get_current_user] = lambda: current_user
        app.dependency_overrides[get_ai_service] = lambda: service

        response = test_client.post("/api/v1/ai/classify", json={"text": "The street light is broken"})

        assert response.status_code == 200
        assert response.json()["category"] == "maintenance"


class TestContact:
    BODY = {
        "name": "Rita Resident",
        "email": "rita@example.com",
        "subject": "Parking question",
        "message": "Where do guests park on weekends?",
    }

    def test_sends_both_emails(self, test_client: TestClient) -> None:
        service = AsyncMock()
        app.dependency_overrides[get_email_service] = lambda: service

        response = test_client.post("/api/v1/contact", json=self.BODY)

        assert response.status_code == 200
        assert response.json()["message"].startswith("Message sent successfully")
        service.send_contact_message.assert_awaited_once_with(
            "Rita Resident", "rita@example.com", "Parking question", "Where do guests park on weekends?"
        )
        service.send_contact_confirmation.assert_awaited_once()

    def test_short_message_is_rejected(self, test_client: TestClient) -> None:
        service = AsyncMock()
        app.dependency_overrides[get_email_service] = lambda: service

        response = test_client.post("/api/v1/contact", json={**self.BODY, "message": "Hi"})

        assert response.status_code == 400
        service.send_contact_message.assert_not_awaited()

    def test_rate_limited_per_client(self, test_client: TestClient) -> None:
        app.dependency_overrides[get_email_service] = lambda: AsyncMock()
        headers = {"X-Forwarded-For": "198.51.100.4"}
        for _ in range(5):
            assert test_client.post("/api/v1/contact", json=self.BODY, headers=headers).status_code == 200

        response = test_client.post("/api/v1/contact", json=self.BODY, headers=headers)

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests. Please try again in 5 minutes."


class TestFeedbackForm:
    def test_members_read_the_form(self, test_client: TestClient, resident_context) -> None:
        service = AsyncMock()
        service.get_form_template.return_value = {"id": "", "title": "Client Satisfaction Form", "fields": []}
        app.dependency_overrides[get_optional_community_context] = lambda: resident_context
        app.dependency_overrides[get_feedback_service] = lambda: service

        response = test_client.get("/api/v1/admin/feedback-form")

        assert response.status_code == 200
        assert response.json()["template"]["title"] == "Client Satisfaction Form"

    def test_only_admins_save_the_form(self, test_client: TestClient, resident_context) -> None:
        service = AsyncMock()
        app.dependency_overrides[get_optional_community_context] = lambda: resident_context
        app.dependency_overrides[get_feedback_service] = lambda: service

        response = test_client.put("/api/v1/admin/feedback-form", json={"title": "Survey"})

        assert response.status_code == 403
        service.save_form_template.assert_not_awaited()


class TestNotifications:
    def test_mark_read_needs_ids(self, test_client: TestClient, current_user) -> None:
        app.dependency_overrides[get_current_user] = lambda: current_user
        app.dependency_overrides[get_async_session] = fake_session

        response = test_client.patch("/api/v1/notifications", json={"notificationIds": []})

        assert response.status_code == 400
        assert response.json() == {"error": "notificationIds must be a non-empty array"}


class TestMessagingGuard:
    def test_foreign_origin_is_rejected(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/api/v1/messaging/conversations",
            json={"participantIds": [str(uuid4())]},
            headers={"Origin": "https://evil.example.com"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "CSRF protection: Invalid origin"}

    def test_reads_skip_origin_check(self, test_client: TestClient) -> None:
        response = test_client.get("/api/v1/messaging/conversations")

        # Reaches the route, which then wants a session
        assert response.status_code == 401


class TestHealth:
    def test_degraded_when_database_is_down(self, test_client: TestClient) -> None:
        with patch("app.api.v1.endpoints.health.db_client") as db_client:
            db_client.health_check = AsyncMock(return_value={"status": "unhealthy", "error": "refused"})
            response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["integrations"]["storage"] is True
