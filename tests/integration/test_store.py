"""Integration tests for the persistence layer against in-memory SQLite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import as_utc
from vitruvi.history.tracker import record_analysis
from vitruvi.subscriptions import subscription_for_plan

pytestmark = pytest.mark.integration

DAY = timedelta(days=1)
START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


async def _user(email="site@example.com"):
    async with get_session() as session:
        return await store.create_user(
            session, email, "hash", "Site Manager", subscription=subscription_for_plan("free")
        )


async def _project(user_id, name="Tower A"):
    async with get_session() as session:
        return await store.create_project(session, user_id, name, location="Pune")


def _snapshot(progress, workers=20):
    return {
        "progressPercentage": progress,
        "delaysFlagged": 0,
        "manpower": {"total": workers, "safetyScore": 90, "productivityIndex": 80},
        "financials": {"budgetSpentPercent": progress / 2},
    }


class TestUsers:
    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, db):
        user = await _user("Site@Example.com")

        async with get_session() as session:
            found = await store.get_user_by_email(session, "SITE@example.COM")

        assert found is not None
        assert found.id == user.id
        assert found.email == "site@example.com"
        assert found.subscription["plan"] == "free"

    @pytest.mark.asyncio
    async def test_scan_usage_increments(self, db):
        user = await _user()

        async with get_session() as session:
            assert await store.increment_scan_usage(session, user.id) == 1
        async with get_session() as session:
            assert await store.increment_scan_usage(session, user.id) == 2
            refreshed = await store.get_user(session, user.id)

        assert refreshed.subscription["scans_used"] == 2

    @pytest.mark.asyncio
    async def test_scan_usage_unknown_user(self, db):
        async with get_session() as session:
            with pytest.raises(LookupError):
                await store.increment_scan_usage(session, uuid4())

    @pytest.mark.asyncio
    async def test_plan_change_resets_usage(self, db):
        user = await _user()
        async with get_session() as session:
            await store.increment_scan_usage(session, user.id)
        async with get_session() as session:
            fresh = await store.get_user(session, user.id)
            await store.set_subscription(session, fresh, subscription_for_plan("pro"))
        async with get_session() as session:
            updated = await store.get_user(session, user.id)

        assert updated.subscription["plan"] == "pro"
        assert updated.subscription["scans_used"] == 0
        assert updated.subscription["scans_limit"] == -1


class TestProjects:
    @pytest.mark.asyncio
    async def test_pagination_newest_first(self, db):
        user = await _user()
        async with get_session() as session:
            for offset, name in enumerate(["old", "middle", "new"]):
                project = await store.create_project(session, user.id, name)
                project.created_at = START + offset * DAY

        async with get_session() as session:
            first_page, total = await store.list_projects(session, user.id, page=1, per_page=2)
            second_page, _ = await store.list_projects(session, user.id, page=2, per_page=2)

        assert total == 3
        assert [p.name for p in first_page] == ["new", "middle"]
        assert [p.name for p in second_page] == ["old"]

    @pytest.mark.asyncio
    async def test_projects_are_owner_scoped(self, db):
        owner = await _user("owner@example.com")
        other = await _user("other@example.com")
        project = await _project(owner.id)

        async with get_session() as session:
            assert await store.get_project(session, project.id, owner.id) is not None
            assert await store.get_project(session, project.id, other.id) is None

    @pytest.mark.asyncio
    async def test_project_data_round_trip(self, db):
        user = await _user()
        project = await _project(user.id)
        document = {"progressPercentage": 55, "financials": {"budgetSpentPercent": 40}}

        async with get_session() as session:
            await store.save_project_data(session, project.id, document)
        async with get_session() as session:
            loaded = await store.get_project(session, project.id, user.id)

        assert loaded.project_data == document

    @pytest.mark.asyncio
    async def test_delete_removes_history_and_rules(self, db):
        user = await _user()
        project = await _project(user.id)
        async with get_session() as session:
            await store.add_history_entry(session, project.id, user.id, _snapshot(10))
            await store.create_alert_rule(
                session,
                project.id,
                user.id,
                {"name": "r", "metric": "safety_score", "condition": "<", "threshold": 70},
            )

        async with get_session() as session:
            loaded = await store.get_project(session, project.id, user.id)
            await store.delete_project(session, loaded)

        async with get_session() as session:
            assert await store.count_history(session, project.id) == 0
            assert await store.list_alert_rules(session, project.id) == []
            assert await store.count_projects(session, user.id) == 0


class TestHistory:
    @pytest.mark.asyncio
    async def test_deltas_against_previous_entry(self, db):
        user = await _user()
        project = await _project(user.id)

        async with get_session() as session:
            first = await record_analysis(session, project.id, user.id, _snapshot(20, 30), START)
        async with get_session() as session:
            second = await record_analysis(
                session, project.id, user.id, _snapshot(32, 26), START + 7 * DAY
            )

        assert first.deltas is None
        assert second.deltas["progress"] == 12
        assert second.deltas["workers"] == -4
        assert second.deltas["budget_spent"] == 6

    @pytest.mark.asyncio
    async def test_backfilled_entry_compares_with_earlier_neighbour(self, db):
        user = await _user()
        project = await _project(user.id)

        async with get_session() as session:
            await record_analysis(session, project.id, user.id, _snapshot(10), START)
            await record_analysis(session, project.id, user.id, _snapshot(40), START + 14 * DAY)
        async with get_session() as session:
            backfilled = await record_analysis(
                session, project.id, user.id, _snapshot(25), START + 7 * DAY
            )

        assert backfilled.deltas["progress"] == 15

    @pytest.mark.asyncio
    async def test_history_is_newest_first(self, db):
        user = await _user()
        project = await _project(user.id)

        async with get_session() as session:
            for week, progress in enumerate([5, 15, 25]):
                await store.add_history_entry(
                    session, project.id, user.id, _snapshot(progress), START + week * 7 * DAY
                )

        async with get_session() as session:
            entries = await store.list_history(session, project.id, limit=2)
            skipped = await store.list_history(session, project.id, skip=2)
            latest = await store.latest_history_entry(session, project.id)

        assert [e.snapshot["progressPercentage"] for e in entries] == [25, 15]
        assert [e.snapshot["progressPercentage"] for e in skipped] == [5]
        assert as_utc(latest.analysis_date) == START + 14 * DAY


class TestNotifications:
    @pytest.mark.asyncio
    async def test_mark_read_is_owner_scoped(self, db):
        owner = await _user("owner@example.com")
        other = await _user("other@example.com")

        async with get_session() as session:
            note = await store.create_notification(session, owner.id, "Hi", "Body")

        async with get_session() as session:
            assert await store.mark_notification_read(session, note.id, other.id) is False
            assert await store.mark_notification_read(session, note.id, owner.id) is True

        async with get_session() as session:
            unread = await store.list_notifications(session, owner.id, unread_only=True)
            everything = await store.list_notifications(session, owner.id)

        assert unread == []
        assert len(everything) == 1
