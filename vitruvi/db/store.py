"""Persistence helpers for users, projects, history and owned records.

Every helper takes the caller's ``AsyncSession`` first; committing is left
to the session context (``get_session``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vitruvi.db.models import (
    AlertRuleModel,
    AnalysisHistoryModel,
    NotificationModel,
    ProjectModel,
    ReportModel,
    UserModel,
    as_utc,
    utcnow,
)
from vitruvi.models import Subscription


# ============================================================================
# Users
# ============================================================================


async def get_user(session: AsyncSession, user_id: UUID) -> UserModel | None:
    return await session.get(UserModel, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> UserModel | None:
    result = await session.execute(
        select(UserModel).where(UserModel.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    name: str,
    phone: str | None = None,
    subscription: Subscription | None = None,
) -> UserModel:
    user = UserModel(
        email=email.strip().lower(),
        password_hash=password_hash,
        name=name,
        phone=phone,
        subscription=(subscription or Subscription()).model_dump(mode="json"),
    )
    session.add(user)
    await session.flush()
    return user


async def set_subscription(
    session: AsyncSession, user: UserModel, subscription: Subscription
) -> None:
    # Reassign so the JSON column is flagged dirty
    user.subscription = subscription.model_dump(mode="json")
    await session.flush()


async def increment_scan_usage(session: AsyncSession, user_id: UUID) -> int:
    """Add one scan to the user's usage counter and return the new count."""
    user = await session.get(UserModel, user_id, with_for_update=True)
    if user is None:
        raise LookupError(f"User {user_id} not found")

    subscription = dict(user.subscription or {})
    subscription["scans_used"] = int(subscription.get("scans_used", 0)) + 1
    user.subscription = subscription
    await session.flush()
    return subscription["scans_used"]


async def record_login(session: AsyncSession, user: UserModel) -> None:
    user.last_login = utcnow()
    await session.flush()


# ============================================================================
# Projects
# ============================================================================


async def count_projects(session: AsyncSession, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(ProjectModel).where(ProjectModel.user_id == user_id)
    )
    return int(result.scalar_one())


async def list_projects(
    session: AsyncSession,
    user_id: UUID,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[ProjectModel], int]:
    """One page of a user's projects, newest first, plus the total count."""
    total = await count_projects(session, user_id)
    result = await session.execute(
        select(ProjectModel)
        .where(ProjectModel.user_id == user_id)
        .order_by(ProjectModel.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def list_all_projects(session: AsyncSession, user_id: UUID) -> list[ProjectModel]:
    result = await session.execute(
        select(ProjectModel)
        .where(ProjectModel.user_id == user_id)
        .order_by(ProjectModel.created_at.desc())
    )
    return list(result.scalars().all())


async def get_project(
    session: AsyncSession, project_id: UUID, user_id: UUID
) -> ProjectModel | None:
    """Fetch a project only if ``user_id`` owns it."""
    result = await session.execute(
        select(ProjectModel).where(
            ProjectModel.id == project_id,
            ProjectModel.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def create_project(
    session: AsyncSession,
    user_id: UUID,
    name: str,
    description: str | None = None,
    location: str | None = None,
    mode: str = "under-construction",
) -> ProjectModel:
    project = ProjectModel(
        user_id=user_id,
        name=name,
        description=description,
        location=location,
        mode=mode,
    )
    session.add(project)
    await session.flush()
    return project


async def update_project(
    session: AsyncSession, project: ProjectModel, changes: dict[str, Any]
) -> ProjectModel:
    for field_name, value in changes.items():
        setattr(project, field_name, value)
    project.updated_at = utcnow()
    await session.flush()
    return project


async def save_project_data(
    session: AsyncSession, project_id: UUID, project_data: dict[str, Any]
) -> None:
    """Replace the project's latest Project Data (last write wins)."""
    await session.execute(
        update(ProjectModel)
        .where(ProjectModel.id == project_id)
        .values(project_data=project_data, updated_at=utcnow())
    )


async def delete_project(session: AsyncSession, project: ProjectModel) -> None:
    """Hard-delete a project and everything recorded against it."""
    for model in (AnalysisHistoryModel, AlertRuleModel, ReportModel):
        await session.execute(delete(model).where(model.project_id == project.id))
    await session.delete(project)
    await session.flush()


# ============================================================================
# Analysis history
# ============================================================================


async def add_history_entry(
    session: AsyncSession,
    project_id: UUID,
    user_id: UUID,
    snapshot: dict[str, Any],
    analysis_date: datetime | None = None,
) -> AnalysisHistoryModel:
    entry = AnalysisHistoryModel(
        project_id=project_id,
        user_id=user_id,
        snapshot=snapshot,
        analysis_date=as_utc(analysis_date) if analysis_date else utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_history(
    session: AsyncSession,
    project_id: UUID,
    limit: int = 30,
    skip: int = 0,
) -> list[AnalysisHistoryModel]:
    """History entries for a project, newest first."""
    result = await session.execute(
        select(AnalysisHistoryModel)
        .where(AnalysisHistoryModel.project_id == project_id)
        .order_by(AnalysisHistoryModel.analysis_date.desc(), AnalysisHistoryModel.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_history(session: AsyncSession, project_id: UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(AnalysisHistoryModel)
        .where(AnalysisHistoryModel.project_id == project_id)
    )
    return int(result.scalar_one())


async def latest_history_entry(
    session: AsyncSession, project_id: UUID
) -> AnalysisHistoryModel | None:
    entries = await list_history(session, project_id, limit=1)
    return entries[0] if entries else None


async def previous_history_entry(
    session: AsyncSession,
    project_id: UUID,
    before: datetime,
    exclude_id: UUID | None = None,
) -> AnalysisHistoryModel | None:
    """Most recent entry dated at or before ``before``, other than ``exclude_id``."""
    query = select(AnalysisHistoryModel).where(
        AnalysisHistoryModel.project_id == project_id,
        AnalysisHistoryModel.analysis_date <= as_utc(before),
    )
    if exclude_id is not None:
        query = query.where(AnalysisHistoryModel.id != exclude_id)

    result = await session.execute(
        query.order_by(
            AnalysisHistoryModel.analysis_date.desc(),
            AnalysisHistoryModel.created_at.desc(),
        ).limit(1)
    )
    return result.scalar_one_or_none()


# ============================================================================
# Notifications
# ============================================================================


async def create_notification(
    session: AsyncSession,
    user_id: UUID,
    title: str,
    message: str,
    type: str = "info",
    project_id: UUID | None = None,
) -> NotificationModel:
    notification = NotificationModel(
        user_id=user_id,
        project_id=project_id,
        title=title,
        message=message,
        type=type,
    )
    session.add(notification)
    await session.flush()
    return notification


async def list_notifications(
    session: AsyncSession,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> list[NotificationModel]:
    query = select(NotificationModel).where(NotificationModel.user_id == user_id)
    if unread_only:
        query = query.where(NotificationModel.read.is_(False))
    result = await session.execute(
        query.order_by(NotificationModel.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def mark_notification_read(
    session: AsyncSession, notification_id: UUID, user_id: UUID
) -> bool:
    result = await session.execute(
        update(NotificationModel)
        .where(
            NotificationModel.id == notification_id,
            NotificationModel.user_id == user_id,
        )
        .values(read=True)
    )
    return result.rowcount > 0


# ============================================================================
# Reports
# ============================================================================


async def create_report_record(
    session: AsyncSession,
    project_id: UUID,
    user_id: UUID,
    report_type: str,
    report_format: str,
    file_path: str,
) -> ReportModel:
    report = ReportModel(
        project_id=project_id,
        user_id=user_id,
        report_type=report_type,
        report_format=report_format,
        file_path=file_path,
    )
    session.add(report)
    await session.flush()
    return report


async def list_reports(session: AsyncSession, project_id: UUID) -> list[ReportModel]:
    result = await session.execute(
        select(ReportModel)
        .where(ReportModel.project_id == project_id)
        .order_by(ReportModel.created_at.desc())
    )
    return list(result.scalars().all())


async def get_report(
    session: AsyncSession, report_id: UUID, user_id: UUID
) -> ReportModel | None:
    result = await session.execute(
        select(ReportModel).where(ReportModel.id == report_id, ReportModel.user_id == user_id)
    )
    return result.scalar_one_or_none()


# ============================================================================
# Alert rules
# ============================================================================


async def create_alert_rule(
    session: AsyncSession,
    project_id: UUID,
    user_id: UUID,
    fields: dict[str, Any],
) -> AlertRuleModel:
    rule = AlertRuleModel(project_id=project_id, user_id=user_id, **fields)
    session.add(rule)
    await session.flush()
    return rule


async def list_alert_rules(session: AsyncSession, project_id: UUID) -> list[AlertRuleModel]:
    result = await session.execute(
        select(AlertRuleModel)
        .where(AlertRuleModel.project_id == project_id)
        .order_by(AlertRuleModel.created_at.desc())
    )
    return list(result.scalars().all())


async def get_alert_rule(session: AsyncSession, rule_id: UUID) -> AlertRuleModel | None:
    return await session.get(AlertRuleModel, rule_id)


async def update_alert_rule(
    session: AsyncSession, rule: AlertRuleModel, changes: dict[str, Any]
) -> AlertRuleModel:
    for field_name, value in changes.items():
        setattr(rule, field_name, value)
    rule.updated_at = utcnow()
    await session.flush()
    return rule


async def delete_alert_rule(session: AsyncSession, rule: AlertRuleModel) -> None:
    await session.delete(rule)
    await session.flush()


async def record_alert_trigger(session: AsyncSession, rule: AlertRuleModel) -> None:
    rule.trigger_count = (rule.trigger_count or 0) + 1
    rule.last_triggered = utcnow()
    await session.flush()
