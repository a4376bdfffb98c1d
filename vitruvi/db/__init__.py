"""Database layer for Vitruvi with async SQLAlchemy."""

from vitruvi.db.connection import close_db, connect_db, get_session, init_db
from vitruvi.db.models import (
    AlertRuleModel,
    AnalysisHistoryModel,
    Base,
    NotificationModel,
    ProjectModel,
    ReportModel,
    UserModel,
)

__all__ = [
    "Base",
    "UserModel",
    "ProjectModel",
    "AnalysisHistoryModel",
    "NotificationModel",
    "ReportModel",
    "AlertRuleModel",
    "connect_db",
    "get_session",
    "init_db",
    "close_db",
]
