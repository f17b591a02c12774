"""API tests for the user notification inbox."""

from fastapi.testclient import TestClient

from repositories.db_models import SuspensionKind
from services.suspension_service import SuspensionService


class TestNotificationsRouter:
    def test_suspended_user_can_read_inbox(
        self, client: TestClient, db_session, auth_headers, test_user, basic_mod
    ):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Spamming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=2,
        )

        response = client.get("/api/notifications", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["unread_count"] == 1
        assert data["items"][0]["type"] == "suspension"

    def test_mark_read(
        self, client: TestClient, db_session, auth_headers, test_user, basic_mod
    ):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Spamming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=2,
        )
        notification_id = client.get(
            "/api/notifications", headers=auth_headers
        ).json()["items"][0]["id"]

        response = client.post(
            f"/api/notifications/{notification_id}/read", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        inbox = client.get("/api/notifications", headers=auth_headers).json()
        assert inbox["unread_count"] == 0

    def test_cannot_read_other_users_notification(
        self,
        client: TestClient,
        db_session,
        other_auth_headers,
        test_user,
        basic_mod,
    ):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Spamming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=2,
        )
        from repositories.db_models import UserNotification

        notification = db_session.query(UserNotification).one()

        response = client.post(
            f"/api/notifications/{notification.id}/read", headers=other_auth_headers
        )
        assert response.status_code == 404
