"""
Router used by the posting flow to filter submitted text.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import authentication.auth as auth
import models.schemas as schemas
import repositories.db_models as db_models
from repositories.database import get_db
from services.content_filter_cache import content_filter_cache
from services.content_filter_service import ContentFilterService

router = APIRouter(prefix="/content-filter", tags=["content-filter"])


@router.post("/apply", response_model=schemas.ContentFilterResponse)
def apply_content_filter(
    body: schemas.ContentFilterRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_current_active_user),
) -> dict:
    """Rewrite a post or thread body with the active filter rules."""
    result = ContentFilterService.apply_to_submission(db, body.text)
    return {
        "filtered_text": result.filtered_text,
        "changed": result.changed,
        "matched_rule_ids": list(result.matched_rule_ids),
    }


@router.post("/check", response_model=schemas.ContentCheckResponse)
def check_content(
    body: schemas.ContentFilterRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(auth.get_current_active_user),
) -> dict:
    """Report which rules would fire, without rewriting or counting."""
    patterns = content_filter_cache.blocked_patterns(body.text, db)
    return {"is_clean": not patterns, "blocked_patterns": patterns}
