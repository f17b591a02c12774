"""
Service for content filter rule administration and submission filtering.
"""

from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import helpers.time_utils as time_utils
from authentication.permissions import ensure_permission
from models.config import settings
from models.exceptions import (
    FilterRuleNotFoundException,
    InvalidRegexException,
    UserNotFoundException,
    ValidationException,
)
from repositories.content_filter_repository import ContentFilterRepository
from repositories.db_models import ContentFilterRule, FilterRuleType
from repositories.user_repository import UserRepository
from services.action_outcome import ActionOutcome, primary_write
from services.content_filter_cache import (
    CompiledRule,
    FilterResult,
    apply_rules,
    compile_pattern,
    content_filter_cache,
)
from services.moderation_log_service import ModerationAction, ModerationLogService


def _effective_replacement(replacement: Optional[str]) -> str:
    return replacement or settings.CONTENT_FILTER_DEFAULT_REPLACEMENT


class ContentFilterService:
    """Service for content filter operations."""

    @staticmethod
    def _require_filter_manager(db: Session, actor_id: int) -> None:
        actor = UserRepository(db).get_by_id(actor_id)
        if not actor:
            raise UserNotFoundException(actor_id)
        ensure_permission(actor, "can_manage_filters")

    @staticmethod
    def _validate_rule(
        db: Session,
        pattern: str,
        is_regex: bool,
        replacement: Optional[str],
        exclude_rule_id: Optional[int] = None,
    ) -> None:
        """
        Reject rules whose output other rules would keep rewriting.

        apply_rules repeats passes until the text settles. A replacement that
        a rule matches on its own (its own rule included), or a new pattern
        that matches an existing replacement, can keep that from happening
        within the pass limit, so such rules are refused up front.

        Raises:
            InvalidRegexException: Bad or over-long pattern
            ValidationException: Replacement conflicts with a rule
        """
        matcher = compile_pattern(
            pattern, is_regex, settings.CONTENT_FILTER_MAX_REGEX_LENGTH
        )
        effective = _effective_replacement(replacement)
        if matcher.search(effective):
            raise ValidationException(
                f"Replacement '{effective}' would itself be filtered by this rule"
            )

        for other in ContentFilterRepository(db).get_active_rules():
            if other.id == exclude_rule_id:
                continue
            try:
                other_matcher = compile_pattern(
                    other.pattern,
                    other.is_regex,
                    settings.CONTENT_FILTER_MAX_REGEX_LENGTH,
                )
            except InvalidRegexException:
                continue
            if other_matcher.search(effective):
                raise ValidationException(
                    f"Replacement '{effective}' would be filtered by rule {other.id}"
                )
            if matcher.search(_effective_replacement(other.replacement)):
                raise ValidationException(
                    f"Pattern would filter the replacement of rule {other.id}"
                )

    @staticmethod
    def create_rule(
        db: Session,
        actor_id: int,
        pattern: str,
        rule_type: FilterRuleType = FilterRuleType.WORD,
        replacement: str = "",
        is_regex: bool = False,
    ) -> ActionOutcome[ContentFilterRule]:
        """
        Add a content filter rule.

        Args:
            db: Database session
            actor_id: Staff member adding the rule
            pattern: Literal text or regex
            rule_type: word, url or phrase
            replacement: Replacement text ("" means the default "xxx")
            is_regex: Whether pattern is a regular expression

        Returns:
            ActionOutcome wrapping the created rule

        Raises:
            InsufficientPermissionsException: Actor can't manage filters
            InvalidRegexException: Pattern is invalid or too long
            ValidationException: Replacement would be filtered again
        """
        ContentFilterService._require_filter_manager(db, actor_id)
        pattern = (pattern or "").strip()
        ContentFilterService._validate_rule(db, pattern, is_regex, replacement)

        repo = ContentFilterRepository(db)
        with primary_write(db, "add_filter"):
            rule = repo.create(
                ContentFilterRule(
                    type=rule_type,
                    pattern=pattern,
                    replacement=replacement or "",
                    is_regex=is_regex,
                    is_active=True,
                    match_count=0,
                    created_by=actor_id,
                    created_at=time_utils.utc_now(),
                )
            )
        content_filter_cache.invalidate()

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.ADD_FILTER,
            details={
                "rule_id": rule.id,
                "pattern": pattern,
                "type": rule_type.value,
                "is_regex": is_regex,
            },
        )
        return ActionOutcome(result=rule, audit_logged=audit_entry is not None)

    @staticmethod
    def get_rule(db: Session, rule_id: int) -> ContentFilterRule:
        """
        Get a rule by ID.

        Raises:
            FilterRuleNotFoundException: If it doesn't exist
        """
        rule = ContentFilterRepository(db).get_by_id(rule_id)
        if not rule:
            raise FilterRuleNotFoundException(rule_id)
        return rule

    @staticmethod
    def update_rule(
        db: Session,
        rule_id: int,
        actor_id: int,
        replacement: Optional[str] = None,
        is_active: Optional[bool] = None,
        rule_type: Optional[FilterRuleType] = None,
    ) -> ActionOutcome[ContentFilterRule]:
        """
        Change a rule's replacement, type or active flag.

        Re-activating a rule re-runs validation against the other active
        rules.

        Raises:
            FilterRuleNotFoundException: If it doesn't exist
            ValidationException: Replacement would be filtered again
        """
        ContentFilterService._require_filter_manager(db, actor_id)
        rule = ContentFilterService.get_rule(db, rule_id)

        new_replacement = rule.replacement if replacement is None else replacement
        new_active = rule.is_active if is_active is None else is_active
        if new_active:
            ContentFilterService._validate_rule(
                db, rule.pattern, rule.is_regex, new_replacement, exclude_rule_id=rule.id
            )

        changes: dict[str, object] = {}
        if replacement is not None:
            changes["replacement"] = replacement
        if is_active is not None:
            changes["is_active"] = is_active
        if rule_type is not None:
            changes["type"] = rule_type

        repo = ContentFilterRepository(db)
        with primary_write(db, "update_filter"):
            for field_name, value in changes.items():
                setattr(rule, field_name, value)
            rule.updated_at = time_utils.utc_now()
            rule = repo.update(rule)
        content_filter_cache.invalidate()

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.UPDATE_FILTER,
            details={
                "rule_id": rule_id,
                "pattern": rule.pattern,
                "changes": {
                    k: (v.value if isinstance(v, FilterRuleType) else v)
                    for k, v in changes.items()
                },
            },
        )
        return ActionOutcome(result=rule, audit_logged=audit_entry is not None)

    @staticmethod
    def delete_rule(db: Session, rule_id: int, actor_id: int) -> ActionOutcome[int]:
        """
        Remove a rule.

        Raises:
            FilterRuleNotFoundException: If it doesn't exist
        """
        ContentFilterService._require_filter_manager(db, actor_id)
        rule = ContentFilterService.get_rule(db, rule_id)
        pattern = rule.pattern

        repo = ContentFilterRepository(db)
        with primary_write(db, "remove_filter"):
            repo.delete(rule)
        content_filter_cache.invalidate()

        audit_entry = ModerationLogService.record(
            db,
            moderator_id=actor_id,
            action=ModerationAction.REMOVE_FILTER,
            details={"rule_id": rule_id, "pattern": pattern},
        )
        return ActionOutcome(result=rule_id, audit_logged=audit_entry is not None)

    @staticmethod
    def list_rules(
        db: Session, active_only: bool = False, skip: int = 0, limit: int = 100
    ) -> tuple[list[ContentFilterRule], int]:
        """List rules newest first."""
        return ContentFilterRepository(db).get_all_filtered(
            active_only=active_only, skip=skip, limit=limit
        )

    @staticmethod
    def test_pattern(
        pattern: str, text: str, is_regex: bool = False, replacement: str = ""
    ) -> FilterResult:
        """
        Try a pattern against sample text without saving it.

        Raises:
            InvalidRegexException: Pattern is invalid or too long
        """
        matcher = compile_pattern(
            pattern, is_regex, settings.CONTENT_FILTER_MAX_REGEX_LENGTH
        )
        trial = CompiledRule(
            rule_id=0,
            pattern=pattern,
            replacement=_effective_replacement(replacement),
            is_regex=is_regex,
            matcher=matcher,
        )
        return apply_rules((trial,), text)

    @staticmethod
    def apply_to_submission(db: Session, text: str) -> FilterResult:
        """
        Filter a post or thread body before it is stored.

        Match counters are bumped on a best-effort basis.
        """
        result = content_filter_cache.apply(text, db)
        if result.changed:
            repo = ContentFilterRepository(db)
            try:
                repo.increment_match_counts(list(result.matched_rule_ids))
                repo.commit()
            except SQLAlchemyError as e:
                repo.rollback()
                logger.warning(f"Could not update filter match counts: {e!r}")
        return result
