"""
Router for staff moderation endpoints.

Every mutation returns the primary record plus `warnings` describing any
secondary effect (trust sync, audit, notification) that did not complete.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import authentication.auth as auth
import models.schemas as schemas
import repositories.db_models as db_models
from helpers.pagination import PaginationLimit, PaginationLimitLarge, PaginationSkip
from repositories.database import get_db
from services.action_outcome import ActionOutcome
from services.content_filter_service import ContentFilterService
from services.moderation_log_service import ModerationLogService
from services.report_service import ReportService
from services.suspension_service import SuspensionService
from services.trust_state_service import TrustState, TrustStateService
from services.warning_service import WarningService

router = APIRouter(prefix="/admin/moderation", tags=["admin-moderation"])


def _outcome_fields(outcome: ActionOutcome[Any]) -> dict[str, Any]:
    return {"degraded": outcome.degraded, "warnings": outcome.warnings}


def _suspension_response(
    suspension: db_models.Suspension,
) -> schemas.SuspensionResponse:
    response = schemas.SuspensionResponse.model_validate(suspension)
    response.status = SuspensionService.get_suspension_status(suspension).value
    return response


# ============================================================================
# Report Queue Endpoints
# ============================================================================


@router.get("/reports", response_model=schemas.ReportListResponse)
def list_reports(
    status: Optional[db_models.ReportStatus] = None,
    priority: Optional[db_models.ReportPriority] = None,
    assigned_to: Optional[int] = None,
    skip: PaginationSkip = 0,
    limit: PaginationLimit = 50,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> dict:
    """Report queue, newest first."""
    reports, total = ReportService.list_reports(
        db, status=status, priority=priority, assigned_to=assigned_to, skip=skip, limit=limit
    )
    return {"items": reports, "total": total}


@router.get("/reports/counts", response_model=schemas.ReportCounts)
def get_report_counts(
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> dict:
    """Number of reports per status for the queue tabs."""
    return {"counts": ReportService.count_by_status(db)}


@router.get("/reports/{report_id}", response_model=schemas.ReportResponse)
def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> db_models.Report:
    return ReportService.get_report(db, report_id)


@router.post("/reports/{report_id}/assign", response_model=schemas.ReportOutcome)
def assign_report(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> dict:
    """
    Take a report into review.

    Returns 409 if another moderator changed the report first, or if it is
    already closed.
    """
    outcome = ReportService.assign_to_self(db, report_id, current_user.id)
    return {"report": outcome.result, **_outcome_fields(outcome)}


@router.put("/reports/{report_id}/priority", response_model=schemas.ReportResponse)
def set_report_priority(
    report_id: int,
    body: schemas.ReportPriorityUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> db_models.Report:
    return ReportService.set_priority(db, report_id, body.priority)


@router.post("/reports/{report_id}/resolve", response_model=schemas.ReportOutcome)
def resolve_report(
    report_id: int,
    body: schemas.ReportClose,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> dict:
    outcome = ReportService.resolve(db, report_id, current_user.id, body.notes)
    return {"report": outcome.result, **_outcome_fields(outcome)}


@router.post("/reports/{report_id}/dismiss", response_model=schemas.ReportOutcome)
def dismiss_report(
    report_id: int,
    body: schemas.ReportClose,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_reports")),
) -> dict:
    outcome = ReportService.dismiss(db, report_id, current_user.id, body.notes)
    return {"report": outcome.result, **_outcome_fields(outcome)}


# ============================================================================
# Suspension Endpoints
# ============================================================================


@router.post("/suspensions", response_model=schemas.SuspensionOutcome, status_code=201)
def create_suspension(
    body: schemas.SuspensionCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    """
    Suspend a user.

    Temporary suspensions need `duration_days`; permanent suspensions and
    super-bans ignore it. The required capability depends on `kind`.
    """
    outcome = SuspensionService.suspend(
        db,
        user_id=body.user_id,
        issuer_id=current_user.id,
        reason=body.reason,
        kind=body.kind,
        duration_days=body.duration_days,
        description=body.description,
    )
    return {"suspension": _suspension_response(outcome.result), **_outcome_fields(outcome)}


@router.get("/suspensions", response_model=schemas.SuspensionListResponse)
def list_suspensions(
    user_id: Optional[int] = None,
    active_only: bool = False,
    skip: PaginationSkip = 0,
    limit: PaginationLimitLarge = 50,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    """Suspension history, newest first."""
    rows, total = SuspensionService.list_suspensions(
        db, user_id=user_id, active_only=active_only, skip=skip, limit=limit
    )
    items = [
        schemas.SuspensionWithUser(
            **_suspension_response(suspension).model_dump(),
            user_username=username,
            user_display_name=display_name,
        )
        for suspension, username, display_name in rows
    ]
    return {"items": items, "total": total}


@router.get("/suspensions/{suspension_id}", response_model=schemas.SuspensionResponse)
def get_suspension(
    suspension_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> schemas.SuspensionResponse:
    return _suspension_response(SuspensionService.get_suspension(db, suspension_id))


@router.post(
    "/suspensions/{suspension_id}/lift", response_model=schemas.SuspensionOutcome
)
def lift_suspension(
    suspension_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    """Lift an active suspension. 409 if it was already lifted."""
    outcome = SuspensionService.lift_suspension(db, suspension_id, current_user.id)
    return {"suspension": _suspension_response(outcome.result), **_outcome_fields(outcome)}


@router.patch("/suspensions/{suspension_id}", response_model=schemas.SuspensionOutcome)
def edit_suspension(
    suspension_id: int,
    body: schemas.SuspensionUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    """Edit reason or description. Any other field is rejected with 422."""
    outcome = SuspensionService.edit_suspension(
        db,
        suspension_id,
        current_user.id,
        reason=body.reason,
        description=body.description,
    )
    return {"suspension": _suspension_response(outcome.result), **_outcome_fields(outcome)}


@router.delete("/suspensions/{suspension_id}", response_model=schemas.DeleteOutcome)
def delete_suspension(
    suspension_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_admin_user),
) -> dict:
    outcome = SuspensionService.delete_suspension(db, suspension_id, current_user.id)
    return {"id": outcome.result, **_outcome_fields(outcome)}


# ============================================================================
# Warning Endpoints
# ============================================================================


@router.post("/warnings", response_model=schemas.WarningOutcome, status_code=201)
def create_warning(
    body: schemas.WarningCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_send_warnings")),
) -> dict:
    outcome = WarningService.warn(
        db,
        user_id=body.user_id,
        issuer_id=current_user.id,
        reason=body.reason,
        points=body.points,
        expires_in_days=body.expires_in_days,
        description=body.description,
    )
    return {"warning": outcome.result, **_outcome_fields(outcome)}


@router.get("/warnings", response_model=schemas.WarningListResponse)
def list_warnings(
    user_id: Optional[int] = None,
    active_only: bool = False,
    skip: PaginationSkip = 0,
    limit: PaginationLimitLarge = 50,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    rows, total = WarningService.list_warnings(
        db, user_id=user_id, active_only=active_only, skip=skip, limit=limit
    )
    items = [
        schemas.WarningWithUser(
            **schemas.WarningResponse.model_validate(warning).model_dump(),
            user_username=username,
            user_display_name=display_name,
        )
        for warning, username, display_name in rows
    ]
    return {"items": items, "total": total}


@router.get("/warnings/points/{user_id}", response_model=schemas.WarningPoints)
def get_warning_points(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    """Active warning points for a user. Informational only."""
    return {"user_id": user_id, **WarningService.get_active_points(db, user_id)}


@router.patch("/warnings/{warning_id}", response_model=schemas.WarningOutcome)
def edit_warning(
    warning_id: int,
    body: schemas.WarningUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_send_warnings")),
) -> dict:
    outcome = WarningService.edit_warning(
        db, warning_id, current_user.id, reason=body.reason, description=body.description
    )
    return {"warning": outcome.result, **_outcome_fields(outcome)}


@router.post("/warnings/{warning_id}/revoke", response_model=schemas.WarningOutcome)
def revoke_warning(
    warning_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_send_warnings")),
) -> dict:
    outcome = WarningService.revoke_warning(db, warning_id, current_user.id)
    return {"warning": outcome.result, **_outcome_fields(outcome)}


@router.delete("/warnings/{warning_id}", response_model=schemas.DeleteOutcome)
def delete_warning(
    warning_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_admin_user),
) -> dict:
    outcome = WarningService.delete_warning(db, warning_id, current_user.id)
    return {"id": outcome.result, **_outcome_fields(outcome)}


# ============================================================================
# Content Filter Endpoints
# ============================================================================


@router.get("/filters", response_model=schemas.FilterRuleListResponse)
def list_filters(
    active_only: bool = False,
    skip: PaginationSkip = 0,
    limit: PaginationLimitLarge = 100,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_filters")),
) -> dict:
    rules, total = ContentFilterService.list_rules(
        db, active_only=active_only, skip=skip, limit=limit
    )
    return {"items": rules, "total": total}


@router.post("/filters", response_model=schemas.FilterRuleOutcome, status_code=201)
def create_filter(
    body: schemas.FilterRuleCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_filters")),
) -> dict:
    """Add a rule. Invalid or over-long regexes are rejected with 422."""
    outcome = ContentFilterService.create_rule(
        db,
        actor_id=current_user.id,
        pattern=body.pattern,
        rule_type=body.type,
        replacement=body.replacement,
        is_regex=body.is_regex,
    )
    return {"rule": outcome.result, **_outcome_fields(outcome)}


@router.post("/filters/test", response_model=schemas.ContentFilterResponse)
def test_filter(
    body: schemas.FilterTestRequest,
    current_user: db_models.User = Depends(auth.require_permission("can_manage_filters")),
) -> dict:
    """Try a pattern on sample text without saving it."""
    result = ContentFilterService.test_pattern(
        body.pattern, body.text, is_regex=body.is_regex, replacement=body.replacement
    )
    return {
        "filtered_text": result.filtered_text,
        "changed": result.changed,
        "matched_rule_ids": list(result.matched_rule_ids),
    }


@router.patch("/filters/{rule_id}", response_model=schemas.FilterRuleOutcome)
def update_filter(
    rule_id: int,
    body: schemas.FilterRuleUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_filters")),
) -> dict:
    outcome = ContentFilterService.update_rule(
        db,
        rule_id,
        current_user.id,
        replacement=body.replacement,
        is_active=body.is_active,
        rule_type=body.type,
    )
    return {"rule": outcome.result, **_outcome_fields(outcome)}


@router.delete("/filters/{rule_id}", response_model=schemas.DeleteOutcome)
def delete_filter(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_manage_filters")),
) -> dict:
    outcome = ContentFilterService.delete_rule(db, rule_id, current_user.id)
    return {"id": outcome.result, **_outcome_fields(outcome)}


# ============================================================================
# Moderation Log & Trust State Endpoints
# ============================================================================


@router.get("/logs", response_model=schemas.ModerationLogListResponse)
def list_moderation_logs(
    moderator_id: Optional[int] = None,
    action: Optional[str] = Query(None, description="e.g. suspend, ban, warn"),
    target_user_id: Optional[int] = None,
    skip: PaginationSkip = 0,
    limit: PaginationLimitLarge = 100,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.require_permission("can_view_mod_logs")),
) -> dict:
    entries, total = ModerationLogService.list_logs(
        db,
        moderator_id=moderator_id,
        action=action,
        target_user_id=target_user_id,
        skip=skip,
        limit=limit,
    )
    return {"items": entries, "total": total}


def _trust_response(db: Session, user_id: int) -> dict:
    return _state_dict(db, TrustStateService.get_state(db, user_id))


def _state_dict(db: Session, state: TrustState) -> dict:
    return {
        "user_id": state.user_id,
        "is_suspended": state.is_suspended,
        "suspended_until": state.suspended_until,
        "stale": state.stale,
        "updated_at": state.updated_at,
        "is_blocked": TrustStateService.is_blocked(db, state.user_id),
    }


@router.post("/trust/reconcile", response_model=schemas.ReconcileResponse)
def reconcile_trust_states(
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_admin_user),
) -> dict:
    """Retry every user whose trust state is pending confirmation."""
    return {"repaired": TrustStateService.reconcile_stale(db)}


@router.get("/trust/{user_id}", response_model=schemas.TrustStateResponse)
def get_trust_state(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_staff_user),
) -> dict:
    return _trust_response(db, user_id)


@router.post("/trust/{user_id}/recompute", response_model=schemas.TrustStateOutcome)
def recompute_trust_state(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_admin_user),
) -> dict:
    """Force a recompute from the user's suspension history. 503 if the store is down."""
    outcome = TrustStateService.force_recompute(db, user_id, current_user.id)
    return {"state": _state_dict(db, outcome.result), **_outcome_fields(outcome)}
