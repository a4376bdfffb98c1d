"""Request and response models for the Vitruvi API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vitruvi.alerts.rules import AlertCondition, AlertMetric, NotificationChannel
from vitruvi.models import ProjectMode

# ============================================================================
# Auth
# ============================================================================


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=120)
    phone: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    phone: str | None = None
    role: str
    is_active: bool
    is_verified: bool
    subscription: dict[str, Any]
    created_at: datetime
    last_login: datetime | None = None


# ============================================================================
# Projects
# ============================================================================


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=300)
    mode: ProjectMode = ProjectMode.UNDER_CONSTRUCTION


class ProjectUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=300)
    mode: ProjectMode | None = None
    status: str | None = Field(None, min_length=1, max_length=40)


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    location: str | None = None
    mode: str
    status: str
    has_data: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, project: Any) -> ProjectResponse:
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            location=project.location,
            mode=project.mode,
            status=project.status,
            has_data=project.project_data is not None,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]
    total: int
    page: int
    per_page: int


class AnalyzeRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 image or data URL")
    mode: ProjectMode | None = None
    analysis_date: datetime | None = Field(
        None, description="Backfill date for photos taken earlier"
    )


class AnalyzeResponse(BaseModel):
    project_id: UUID
    project_data: dict[str, Any]
    confidence_score: float
    insights: list[str]
    scans_used: int
    history_recorded: bool


# ============================================================================
# Alerts
# ============================================================================


class AlertRuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    metric: AlertMetric
    condition: AlertCondition
    threshold: float
    enabled: bool = True
    notification_channels: list[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.EMAIL]
    )
    recipients: list[str] = Field(default_factory=list)


class AlertRuleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = None
    metric: AlertMetric | None = None
    condition: AlertCondition | None = None
    threshold: float | None = None
    enabled: bool | None = None
    notification_channels: list[NotificationChannel] | None = None
    recipients: list[str] | None = None


class AlertRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    description: str | None = None
    metric: str
    condition: str
    threshold: float
    enabled: bool
    notification_channels: list[str]
    recipients: list[str]
    last_triggered: datetime | None = None
    trigger_count: int
    created_at: datetime


# ============================================================================
# Notifications
# ============================================================================


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = "info"
    project_id: UUID | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID | None = None
    type: str
    title: str
    message: str
    read: bool
    created_at: datetime


class SendMessageRequest(BaseModel):
    to: str = Field(..., min_length=3, max_length=40)
    message: str = Field(..., min_length=1, max_length=1600)

    @field_validator("to")
    @classmethod
    def strip_number(cls, v: str) -> str:
        return v.strip()


# ============================================================================
# Reports
# ============================================================================


class ReportRequest(BaseModel):
    report_type: Literal["summary", "detailed", "financial", "compliance"] = "summary"
    report_format: Literal["pdf", "excel", "pptx"] = "pdf"


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    report_type: str
    report_format: str
    created_at: datetime
