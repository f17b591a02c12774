"""
Unit tests for WarningService.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from models.exceptions import (
    InsufficientPermissionsException,
    ValidationException,
    WarningNotFoundException,
)
from repositories.db_models import ModerationLog, ModerationWarning, UserNotification
from services.trust_state_service import TrustStateService
from services.warning_service import WarningService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestWarn:
    """Tests for WarningService.warn"""

    def test_warn_defaults(self, db_session, test_user, basic_mod):
        with patch("helpers.time_utils.utc_now", return_value=NOW):
            outcome = WarningService.warn(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Off-topic posting",
            )

        warning = outcome.result
        assert outcome.degraded is False
        assert warning.points == 1
        assert warning.is_active is True
        assert warning.expires_at.replace(tzinfo=timezone.utc) == NOW + timedelta(
            days=30
        )

    def test_warning_never_blocks(self, db_session, test_user, basic_mod):
        WarningService.warn(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Off-topic posting",
            points=50,
        )
        assert TrustStateService.is_blocked(db_session, test_user.id) is False

    def test_warn_audits_and_notifies(self, db_session, test_user, basic_mod):
        WarningService.warn(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Off-topic posting",
            points=2,
        )

        logs = db_session.query(ModerationLog).all()
        assert len(logs) == 1
        assert logs[0].action == "warn"
        assert logs[0].moderator_id == basic_mod.id
        assert '"points": 2' in logs[0].details
        assert db_session.query(UserNotification).count() == 1

    def test_points_must_be_positive(self, db_session, test_user, basic_mod):
        with pytest.raises(ValidationException):
            WarningService.warn(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Off-topic posting",
                points=0,
            )

    def test_expiry_must_be_positive(self, db_session, test_user, basic_mod):
        with pytest.raises(ValidationException):
            WarningService.warn(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Off-topic posting",
                expires_in_days=0,
            )

    def test_regular_user_cannot_warn(self, db_session, test_user, other_user):
        with pytest.raises(InsufficientPermissionsException):
            WarningService.warn(
                db_session,
                user_id=other_user.id,
                issuer_id=test_user.id,
                reason="I don't like them",
            )
        assert db_session.query(ModerationWarning).count() == 0


class TestEditRevokeDelete:
    """Tests for edit_warning, revoke_warning and delete_warning"""

    @pytest.fixture
    def warning(self, db_session, test_user, basic_mod):
        return WarningService.warn(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Off-topic posting",
            points=3,
        ).result

    def test_edit_wording_only(self, db_session, warning, basic_mod):
        outcome = WarningService.edit_warning(
            db_session, warning.id, basic_mod.id, description="Thread #42"
        )
        assert outcome.result.description == "Thread #42"
        assert outcome.result.points == 3

    def test_edit_rejects_blank_reason(self, db_session, warning, basic_mod):
        with pytest.raises(ValidationException):
            WarningService.edit_warning(db_session, warning.id, basic_mod.id, reason=" ")

    def test_revoke_drops_points(self, db_session, warning, test_user, basic_mod):
        WarningService.revoke_warning(db_session, warning.id, basic_mod.id)

        points = WarningService.get_active_points(db_session, test_user.id)
        assert points == {
            "active_points": 0,
            "active_warnings": 0,
            "total_warnings_received": 1,
        }

    def test_revoke_twice_is_noop(self, db_session, warning, basic_mod):
        WarningService.revoke_warning(db_session, warning.id, basic_mod.id)
        outcome = WarningService.revoke_warning(db_session, warning.id, basic_mod.id)

        assert outcome.result.is_active is False
        revokes = (
            db_session.query(ModerationLog)
            .filter(ModerationLog.action == "revoke_warning")
            .count()
        )
        assert revokes == 1

    def test_delete_requires_admin(self, db_session, warning, basic_mod):
        with pytest.raises(InsufficientPermissionsException):
            WarningService.delete_warning(db_session, warning.id, basic_mod.id)

    def test_delete(self, db_session, warning, admin_user):
        warning_id = warning.id
        outcome = WarningService.delete_warning(db_session, warning_id, admin_user.id)

        assert outcome.result == warning_id
        with pytest.raises(WarningNotFoundException):
            WarningService.get_warning(db_session, warning_id)


class TestActivePoints:
    """Tests for WarningService.get_active_points"""

    def test_expired_warnings_do_not_count(self, db_session, test_user, basic_mod):
        with patch("helpers.time_utils.utc_now", return_value=NOW):
            WarningService.warn(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Short",
                points=2,
                expires_in_days=1,
            )
            WarningService.warn(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Long",
                points=5,
                expires_in_days=60,
            )

        with patch("helpers.time_utils.utc_now", return_value=NOW + timedelta(days=2)):
            points = WarningService.get_active_points(db_session, test_user.id)
            rows, total = WarningService.list_warnings(
                db_session, user_id=test_user.id, active_only=True
            )

        assert points["active_points"] == 5
        assert points["active_warnings"] == 1
        assert points["total_warnings_received"] == 2
        assert total == 1
        assert rows[0][0].reason == "Long"
