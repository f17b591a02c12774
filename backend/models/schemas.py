from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from repositories.db_models import (
    FilterRuleType,
    ReportPriority,
    ReportStatus,
    ReportTargetType,
    SuspensionKind,
    UserNotificationType,
)


# --- Shared ---


class OutcomeBase(BaseModel):
    """Fields every staff action response carries."""

    degraded: bool = False
    warnings: List[str] = Field(
        default_factory=list,
        description="Secondary effects that did not complete: "
        "trust_state_pending, audit_delayed, notification_pending",
    )


# --- Suspension Schemas ---


class SuspensionCreate(BaseModel):
    """Schema for issuing a suspension."""

    user_id: int
    kind: SuspensionKind
    reason: str = Field(..., min_length=1, max_length=2000)
    duration_days: Optional[int] = Field(
        None, description="Required for temporary suspensions; ignored otherwise"
    )
    description: Optional[str] = Field(None, max_length=5000)


class SuspensionUpdate(BaseModel):
    """Only wording can be edited; kind and duration are rejected."""

    reason: Optional[str] = Field(None, min_length=1, max_length=2000)
    description: Optional[str] = Field(None, max_length=5000)

    model_config = ConfigDict(extra="forbid")


class SuspensionResponse(BaseModel):
    id: int
    user_id: int
    issued_by: int
    reason: str
    description: Optional[str]
    kind: SuspensionKind
    starts_at: datetime
    expires_at: Optional[datetime]
    is_active: bool
    lifted_at: Optional[datetime]
    lifted_by: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SuspensionWithUser(SuspensionResponse):
    """Suspension with user details (admin list view)."""

    user_username: str
    user_display_name: str


class SuspensionOutcome(OutcomeBase):
    suspension: SuspensionResponse


class SuspensionListResponse(BaseModel):
    items: List[SuspensionWithUser]
    total: int


# --- Warning Schemas ---


class WarningCreate(BaseModel):
    """Schema for issuing a warning."""

    user_id: int
    reason: str = Field(..., min_length=1, max_length=2000)
    points: int = Field(1, ge=1, le=100)
    expires_in_days: Optional[int] = Field(None, ge=1, le=3650)
    description: Optional[str] = Field(None, max_length=5000)


class WarningUpdate(BaseModel):
    """Only wording can be edited; points and expiry are rejected."""

    reason: Optional[str] = Field(None, min_length=1, max_length=2000)
    description: Optional[str] = Field(None, max_length=5000)

    model_config = ConfigDict(extra="forbid")


class WarningResponse(BaseModel):
    id: int
    user_id: int
    issued_by: int
    reason: str
    description: Optional[str]
    points: int
    expires_at: datetime
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class WarningWithUser(WarningResponse):
    user_username: str
    user_display_name: str


class WarningOutcome(OutcomeBase):
    warning: WarningResponse


class WarningListResponse(BaseModel):
    items: List[WarningWithUser]
    total: int


class WarningPoints(BaseModel):
    user_id: int
    active_points: int
    active_warnings: int
    total_warnings_received: int


# --- Report Schemas ---


class ReportCreate(BaseModel):
    """Schema for submitting a report."""

    reported_user_id: int
    target_type: ReportTargetType
    target_id: Optional[int] = None
    reason: str = Field(..., min_length=1, max_length=2000)
    category: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=5000)


class ReportResponse(BaseModel):
    id: int
    reporter_id: int
    reported_user_id: int
    target_type: ReportTargetType
    target_id: Optional[int]
    reason: str
    category: str
    description: Optional[str]
    status: ReportStatus
    priority: ReportPriority
    assigned_to: Optional[int]
    resolved_by: Optional[int]
    resolved_at: Optional[datetime]
    resolution_notes: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportOutcome(OutcomeBase):
    report: ReportResponse


class ReportListResponse(BaseModel):
    items: List[ReportResponse]
    total: int


class ReportPriorityUpdate(BaseModel):
    priority: ReportPriority


class ReportClose(BaseModel):
    """Body for resolving or dismissing a report."""

    notes: Optional[str] = Field(None, max_length=2000)


class ReportCounts(BaseModel):
    counts: Dict[str, int]


# --- Content Filter Schemas ---


class FilterRuleCreate(BaseModel):
    type: FilterRuleType = FilterRuleType.WORD
    pattern: str = Field(..., min_length=1, max_length=500)
    replacement: str = Field("", max_length=255)
    is_regex: bool = False


class FilterRuleUpdate(BaseModel):
    type: Optional[FilterRuleType] = None
    replacement: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class FilterRuleResponse(BaseModel):
    id: int
    type: FilterRuleType
    pattern: str
    replacement: str
    is_regex: bool
    is_active: bool
    match_count: int
    created_by: int
    created_at: datetime
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class FilterRuleOutcome(OutcomeBase):
    rule: FilterRuleResponse


class FilterRuleListResponse(BaseModel):
    items: List[FilterRuleResponse]
    total: int


class FilterTestRequest(BaseModel):
    pattern: str = Field(..., min_length=1, max_length=500)
    text: str = Field(..., max_length=50000)
    is_regex: bool = False
    replacement: str = Field("", max_length=255)


class ContentFilterRequest(BaseModel):
    text: str = Field(..., max_length=100000)


class ContentFilterResponse(BaseModel):
    filtered_text: str
    changed: bool
    matched_rule_ids: List[int]


class ContentCheckResponse(BaseModel):
    is_clean: bool
    blocked_patterns: List[str]


# --- Moderation Log Schemas ---


class ModerationLogResponse(BaseModel):
    id: int
    moderator_id: int
    action: str
    target_user_id: Optional[int]
    target_post_id: Optional[int]
    target_thread_id: Optional[int]
    reason: Optional[str]
    details: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModerationLogListResponse(BaseModel):
    items: List[ModerationLogResponse]
    total: int


# --- Trust State Schemas ---


class TrustStateResponse(BaseModel):
    user_id: int
    is_suspended: bool
    suspended_until: Optional[datetime]
    stale: bool
    updated_at: Optional[datetime]
    is_blocked: bool

    model_config = ConfigDict(from_attributes=True)


class TrustStateOutcome(OutcomeBase):
    state: TrustStateResponse


class ReconcileResponse(BaseModel):
    repaired: int


class DeleteOutcome(OutcomeBase):
    id: int
    deleted: bool = True


# --- Notification Schemas ---


class UserNotificationResponse(BaseModel):
    id: int
    type: UserNotificationType
    title: str
    message: str
    data: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserNotificationListResponse(BaseModel):
    items: List[UserNotificationResponse]
    unread_count: int
