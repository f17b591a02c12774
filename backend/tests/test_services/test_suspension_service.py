"""
Unit tests for SuspensionService.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models.exceptions import (
    DependencyException,
    InsufficientPermissionsException,
    SuspensionNotActiveException,
    SuspensionNotFoundException,
    UserNotFoundException,
    ValidationException,
)
from repositories.db_models import (
    ModerationLog,
    Suspension,
    SuspensionKind,
    UserNotification,
    UserNotificationType,
)
from services.action_outcome import (
    AUDIT_DELAYED,
    NOTIFICATION_PENDING,
    TRUST_STATE_PENDING,
)
from services.suspension_service import SuspensionService, SuspensionStatus
from services.trust_state_service import TrustStateService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _logs(db_session, action=None):
    query = db_session.query(ModerationLog)
    if action:
        query = query.filter(ModerationLog.action == action)
    return query.all()


def _store_failure(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("database is locked"))


class TestSuspend:
    """Tests for SuspensionService.suspend"""

    def test_temporary_suspension_blocks_until_expiry(
        self, db_session, test_user, basic_mod
    ):
        """A 7 day suspension blocks now and lapses on its own after 7 days."""
        with patch("helpers.time_utils.utc_now", return_value=NOW):
            outcome = SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Spamming links",
                kind=SuspensionKind.TEMPORARY,
                duration_days=7,
            )
            assert TrustStateService.is_blocked(db_session, test_user.id) is True

        suspension = outcome.result
        assert outcome.degraded is False
        assert suspension.is_active is True
        assert suspension.expires_at.replace(tzinfo=timezone.utc) == NOW + timedelta(
            days=7
        )

        later = NOW + timedelta(days=7, seconds=1)
        with patch("helpers.time_utils.utc_now", return_value=later):
            assert TrustStateService.is_blocked(db_session, test_user.id) is False

        # Nothing was written to make the suspension lapse
        db_session.refresh(suspension)
        assert suspension.is_active is True

    def test_permanent_suspension_ignores_duration(
        self, db_session, test_user, super_mod
    ):
        outcome = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=super_mod.id,
            reason="Ban evasion",
            kind=SuspensionKind.PERMANENT,
            duration_days=3,
        )

        assert outcome.result.expires_at is None
        state = TrustStateService.get_state(db_session, test_user.id)
        assert state.is_suspended is True
        assert state.suspended_until is None

    def test_writes_one_audit_entry(self, db_session, test_user, super_mod):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=super_mod.id,
            reason="Ban evasion",
            kind=SuspensionKind.PERMANENT,
        )

        logs = _logs(db_session)
        assert len(logs) == 1
        assert logs[0].action == "ban"
        assert logs[0].moderator_id == super_mod.id
        assert logs[0].target_user_id == test_user.id

    def test_temporary_suspension_audited_as_suspend(
        self, db_session, test_user, basic_mod
    ):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Flaming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=1,
        )
        assert [log.action for log in _logs(db_session)] == ["suspend"]

    def test_notifies_user(self, db_session, test_user, basic_mod):
        SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Flaming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=1,
        )

        notifications = db_session.query(UserNotification).all()
        assert len(notifications) == 1
        assert notifications[0].user_id == test_user.id
        assert notifications[0].type == UserNotificationType.SUSPENSION

    @pytest.mark.parametrize("duration", [None, 0, -3])
    def test_temporary_requires_positive_duration(
        self, db_session, test_user, basic_mod, duration
    ):
        with pytest.raises(ValidationException):
            SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Flaming",
                kind=SuspensionKind.TEMPORARY,
                duration_days=duration,
            )
        assert db_session.query(Suspension).count() == 0

    def test_requires_reason(self, db_session, test_user, basic_mod):
        with pytest.raises(ValidationException):
            SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="   ",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            )

    def test_unknown_user(self, db_session, basic_mod):
        with pytest.raises(UserNotFoundException):
            SuspensionService.suspend(
                db_session,
                user_id=9999,
                issuer_id=basic_mod.id,
                reason="Flaming",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            )

    def test_basic_mod_cannot_suspend_permanently(
        self, db_session, test_user, basic_mod
    ):
        with pytest.raises(InsufficientPermissionsException):
            SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Ban evasion",
                kind=SuspensionKind.PERMANENT,
            )

    def test_super_mod_cannot_super_ban(self, db_session, test_user, super_mod):
        with pytest.raises(InsufficientPermissionsException):
            SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=super_mod.id,
                reason="Ban evasion",
                kind=SuspensionKind.SUPER_BAN,
            )

    def test_basic_mod_cannot_suspend_moderator(
        self, db_session, basic_mod, country_mod
    ):
        with pytest.raises(InsufficientPermissionsException):
            SuspensionService.suspend(
                db_session,
                user_id=country_mod.id,
                issuer_id=basic_mod.id,
                reason="Abuse of powers",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            )

    def test_admin_can_super_ban(self, db_session, test_user, admin_user):
        outcome = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=admin_user.id,
            reason="Illegal content",
            kind=SuspensionKind.SUPER_BAN,
        )
        assert outcome.result.kind == SuspensionKind.SUPER_BAN
        assert TrustStateService.is_blocked(db_session, test_user.id) is True

    def test_primary_write_failure_is_retryable(
        self, db_session, test_user, basic_mod
    ):
        with patch(
            "repositories.suspension_repository.SuspensionRepository.create",
            side_effect=_store_failure,
        ):
            with pytest.raises(DependencyException):
                SuspensionService.suspend(
                    db_session,
                    user_id=test_user.id,
                    issuer_id=basic_mod.id,
                    reason="Flaming",
                    kind=SuspensionKind.TEMPORARY,
                    duration_days=1,
                )

        assert _logs(db_session) == []
        assert TrustStateService.is_blocked(db_session, test_user.id) is False

    def test_recompute_failure_keeps_user_blocked(
        self, db_session, test_user, basic_mod
    ):
        """A failed trust sync degrades the result but never under-blocks."""
        with patch(
            "repositories.user_repository.UserRepository.write_trust_state",
            side_effect=_store_failure,
        ), patch(
            "services.trust_state_service.NotificationService.notify_trust_state_stale"
        ):
            outcome = SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Flaming",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            )

        assert outcome.result.id is not None
        assert outcome.warnings == [TRUST_STATE_PENDING]
        assert outcome.degraded is True
        assert TrustStateService.is_blocked(db_session, test_user.id) is True

    def test_audit_failure_does_not_fail_action(
        self, db_session, test_user, basic_mod
    ):
        with patch(
            "repositories.moderation_log_repository.ModerationLogRepository.create",
            side_effect=_store_failure,
        ), patch(
            "services.notification_service.NotificationRepository.create",
            side_effect=_store_failure,
        ):
            outcome = SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Flaming",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            )

        assert outcome.warnings == [AUDIT_DELAYED, NOTIFICATION_PENDING]
        assert db_session.query(Suspension).count() == 1
        assert TrustStateService.is_blocked(db_session, test_user.id) is True


class TestLiftSuspension:
    """Tests for SuspensionService.lift_suspension"""

    def _suspend(self, db_session, user, issuer, kind=SuspensionKind.TEMPORARY):
        return SuspensionService.suspend(
            db_session,
            user_id=user.id,
            issuer_id=issuer.id,
            reason="Flaming",
            kind=kind,
            duration_days=5,
        ).result

    def test_lifting_only_suspension_unblocks(self, db_session, test_user, basic_mod):
        suspension = self._suspend(db_session, test_user, basic_mod)

        outcome = SuspensionService.lift_suspension(
            db_session, suspension.id, basic_mod.id
        )

        assert outcome.result.is_active is False
        assert outcome.result.lifted_by == basic_mod.id
        assert outcome.result.lifted_at is not None
        assert TrustStateService.is_blocked(db_session, test_user.id) is False
        assert [log.action for log in _logs(db_session, "unsuspend")] == ["unsuspend"]

    def test_lifting_one_of_two_keeps_user_blocked(
        self, db_session, test_user, basic_mod, admin_user
    ):
        first = self._suspend(db_session, test_user, basic_mod)
        self._suspend(db_session, test_user, admin_user, SuspensionKind.PERMANENT)

        SuspensionService.lift_suspension(db_session, first.id, basic_mod.id)

        assert TrustStateService.is_blocked(db_session, test_user.id) is True
        assert TrustStateService.get_state(db_session, test_user.id).suspended_until is None

    def test_lifting_twice_conflicts(self, db_session, test_user, basic_mod):
        suspension = self._suspend(db_session, test_user, basic_mod)
        SuspensionService.lift_suspension(db_session, suspension.id, basic_mod.id)

        with pytest.raises(SuspensionNotActiveException):
            SuspensionService.lift_suspension(db_session, suspension.id, basic_mod.id)

        assert len(_logs(db_session, "unsuspend")) == 1

    def test_concurrent_lift_loses(self, db_session, test_user, basic_mod):
        """The conditional update catches a lift that landed after our read."""
        suspension = self._suspend(db_session, test_user, basic_mod)

        with patch(
            "repositories.suspension_repository.SuspensionRepository.lift_if_active",
            return_value=0,
        ):
            with pytest.raises(SuspensionNotActiveException):
                SuspensionService.lift_suspension(
                    db_session, suspension.id, basic_mod.id
                )

        assert _logs(db_session, "unsuspend") == []

    def test_lift_missing_suspension(self, db_session, basic_mod):
        with pytest.raises(SuspensionNotFoundException):
            SuspensionService.lift_suspension(db_session, 9999, basic_mod.id)

    def test_status_distinguishes_lift_from_expiry(
        self, db_session, test_user, basic_mod
    ):
        with patch("helpers.time_utils.utc_now", return_value=NOW):
            lifted = self._suspend(db_session, test_user, basic_mod)
            lapsed = self._suspend(db_session, test_user, basic_mod)
            SuspensionService.lift_suspension(db_session, lifted.id, basic_mod.id)

        db_session.refresh(lapsed)
        later = NOW + timedelta(days=30)
        assert SuspensionService.get_suspension_status(lifted, later) == SuspensionStatus.LIFTED
        assert SuspensionService.get_suspension_status(lapsed, later) == SuspensionStatus.EXPIRED
        assert SuspensionService.get_suspension_status(lapsed, NOW) == SuspensionStatus.ACTIVE
        assert lapsed.lifted_by is None


class TestEditAndDeleteSuspension:
    """Tests for edit_suspension and delete_suspension"""

    def test_edit_reason(self, db_session, test_user, basic_mod):
        suspension = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Flaming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=5,
        ).result
        expires_at = suspension.expires_at

        outcome = SuspensionService.edit_suspension(
            db_session, suspension.id, basic_mod.id, reason="Repeated flaming"
        )

        assert outcome.result.reason == "Repeated flaming"
        assert outcome.result.expires_at == expires_at
        assert outcome.result.kind == SuspensionKind.TEMPORARY
        assert len(_logs(db_session, "edit_suspension")) == 1

    def test_edit_requires_a_change(self, db_session, test_user, basic_mod):
        suspension = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=basic_mod.id,
            reason="Flaming",
            kind=SuspensionKind.TEMPORARY,
            duration_days=5,
        ).result

        with pytest.raises(ValidationException):
            SuspensionService.edit_suspension(db_session, suspension.id, basic_mod.id)

    def test_delete_is_admin_only(self, db_session, test_user, super_mod):
        suspension = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=super_mod.id,
            reason="Flaming",
            kind=SuspensionKind.PERMANENT,
        ).result

        with pytest.raises(InsufficientPermissionsException):
            SuspensionService.delete_suspension(db_session, suspension.id, super_mod.id)

    def test_delete_recomputes_trust_state(self, db_session, test_user, admin_user):
        suspension = SuspensionService.suspend(
            db_session,
            user_id=test_user.id,
            issuer_id=admin_user.id,
            reason="Mistake",
            kind=SuspensionKind.PERMANENT,
        ).result
        suspension_id = suspension.id

        outcome = SuspensionService.delete_suspension(
            db_session, suspension_id, admin_user.id
        )

        assert outcome.result == suspension_id
        assert db_session.query(Suspension).count() == 0
        assert TrustStateService.is_blocked(db_session, test_user.id) is False
        assert len(_logs(db_session, "delete_suspension")) == 1


class TestListSuspensions:
    """Tests for SuspensionService.list_suspensions"""

    def test_active_only_hides_lifted_and_expired(
        self, db_session, test_user, other_user, basic_mod
    ):
        with patch("helpers.time_utils.utc_now", return_value=NOW):
            short = SuspensionService.suspend(
                db_session,
                user_id=test_user.id,
                issuer_id=basic_mod.id,
                reason="Short",
                kind=SuspensionKind.TEMPORARY,
                duration_days=1,
            ).result
            lifted = SuspensionService.suspend(
                db_session,
                user_id=other_user.id,
                issuer_id=basic_mod.id,
                reason="Lifted",
                kind=SuspensionKind.TEMPORARY,
                duration_days=10,
            ).result
            SuspensionService.lift_suspension(db_session, lifted.id, basic_mod.id)
            current = SuspensionService.suspend(
                db_session,
                user_id=other_user.id,
                issuer_id=basic_mod.id,
                reason="Current",
                kind=SuspensionKind.TEMPORARY,
                duration_days=10,
            ).result

        with patch("helpers.time_utils.utc_now", return_value=NOW + timedelta(days=2)):
            rows, total = SuspensionService.list_suspensions(
                db_session, active_only=True
            )
            all_rows, all_total = SuspensionService.list_suspensions(db_session)

        assert total == 1
        assert rows[0][0].id == current.id
        assert rows[0][1] == other_user.username
        assert all_total == 3
        assert {row[0].id for row in all_rows} == {short.id, lifted.id, current.id}
