"""API tests for report submission."""

from datetime import timedelta

from fastapi.testclient import TestClient

import helpers.time_utils as time_utils
from repositories.db_models import SuspensionKind
from services.suspension_service import SuspensionService


def _payload(reported_user_id: int, **overrides) -> dict:
    payload = {
        "reported_user_id": reported_user_id,
        "target_type": "post",
        "target_id": 12,
        "reason": "Posting scam links",
        "category": "spam",
    }
    payload.update(overrides)
    return payload


class TestSubmitReport:
    def test_submit(self, client: TestClient, auth_headers, test_user, other_user):
        response = client.post(
            "/api/reports", json=_payload(other_user.id), headers=auth_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["priority"] == "normal"
        assert data["reporter_id"] == test_user.id

    def test_requires_auth(self, client: TestClient, other_user):
        response = client.post("/api/reports", json=_payload(other_user.id))
        assert response.status_code == 401

    def test_duplicate_is_conflict(self, client: TestClient, auth_headers, other_user):
        client.post("/api/reports", json=_payload(other_user.id), headers=auth_headers)
        response = client.post(
            "/api/reports", json=_payload(other_user.id), headers=auth_headers
        )

        assert response.status_code == 409
        assert "correlation_id" in response.json()

    def test_self_report_rejected(self, client: TestClient, auth_headers, test_user):
        response = client.post(
            "/api/reports", json=_payload(test_user.id), headers=auth_headers
        )
        assert response.status_code == 400

    def test_invalid_target_type(self, client: TestClient, auth_headers, other_user):
        response = client.post(
            "/api/reports",
            json=_payload(other_user.id, target_type="comment"),
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_suspended_user_blocked(
        self, client: TestClient, db_session, auth_headers, test_user, other_user, basic_mod
    ):
        """A suspended member gets 403 with the suspension end."""
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Spamming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=7,
        )

        response = client.post(
            "/api/reports", json=_payload(other_user.id), headers=auth_headers
        )

        assert response.status_code == 403
        data = response.json()
        assert data["pending"] is False
        expires_at = data["expires_at"]
        assert expires_at is not None
        expected = time_utils.utc_now() + timedelta(days=7)
        assert expires_at[:10] == expected.date().isoformat()

    def test_rate_limited(
        self, client: TestClient, auth_headers, make_user, monkeypatch
    ):
        from models.config import settings

        monkeypatch.setattr(settings, "REPORT_SUBMIT_RATE_LIMIT", "2/minute")
        targets = [make_user(f"target_{i}") for i in range(3)]

        codes = [
            client.post(
                "/api/reports", json=_payload(t.id), headers=auth_headers
            ).status_code
            for t in targets
        ]

        assert codes == [201, 201, 429]
