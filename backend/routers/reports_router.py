"""
Router for user-facing report submission.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

import authentication.auth as auth
import models.schemas as schemas
import repositories.db_models as db_models
from helpers.rate_limiter import limiter, report_submit_limit
from repositories.database import get_db
from services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=schemas.ReportResponse, status_code=201)
@limiter.limit(report_submit_limit)
def submit_report(
    request: Request,
    report_data: schemas.ReportCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_current_active_user),
) -> db_models.Report:
    """
    Report a post, thread or user.

    One open report per reporter and target; a second one returns 409 until
    the first is closed. Suspended users are rejected before this runs.
    """
    return ReportService.submit(
        db=db,
        reporter_id=current_user.id,
        reported_user_id=report_data.reported_user_id,
        target_type=report_data.target_type,
        target_id=report_data.target_id,
        reason=report_data.reason,
        category=report_data.category,
        description=report_data.description,
    )
