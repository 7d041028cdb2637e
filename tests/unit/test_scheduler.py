"""
Unit tests for src/analytics/scheduler.py

Tests the automation scheduler including:
- next-run arithmetic per frequency
- alert comparisons and minimum trigger intervals
- due-task processing, failure isolation and rescheduling
- task/alert registry operations
- lifecycle (start/stop) and persisted task state
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.analytics.models import MarketInsight
from src.analytics.scheduler import (
    AlertConditions,
    AlertRule,
    AutomationScheduler,
    AutomationTask,
    calculate_next_run,
    compare_value,
    task_to_dict,
)


@pytest.fixture
def analytics():
    service = MagicMock()
    service.get_dashboard_metrics = AsyncMock()
    service.get_user_analytics = AsyncMock()
    service.generate_report = AsyncMock(return_value={"type": "market"})
    return service


@pytest.fixture
def insights():
    service = MagicMock()
    service.generate_automated_market_insights = AsyncMock(return_value=[])
    service.automate_user_recommendations = AsyncMock()
    return service


@pytest.fixture
def alert_manager():
    return MagicMock()


@pytest.fixture
def scheduler(analytics, insights, alert_manager, clock):
    return AutomationScheduler(
        analytics,
        insights=insights,
        alert_manager=alert_manager,
        clock=clock,
        with_default_tasks=False,
    )


def _insight(type="opportunity", impact="high", action_required=True, now=None):
    return MarketInsight(
        type=type,
        title="Skills Gap Opportunities Identified",
        description="2 high-demand skills with limited supply detected.",
        impact=impact,
        action_required=action_required,
        generated_at=now or datetime(2025, 6, 15),
    )


# ===== PURE HELPERS =====


class TestCalculateNextRun:
    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("hourly", datetime(2025, 1, 31, 13, 0)),
            ("daily", datetime(2025, 2, 1, 12, 0)),
            ("weekly", datetime(2025, 2, 7, 12, 0)),
            ("monthly", datetime(2025, 2, 28, 12, 0)),
        ],
    )
    def test_one_period_after_last_run(self, frequency, expected):
        assert calculate_next_run(frequency, datetime(2025, 1, 31, 12, 0)) == expected

    def test_never_run_uses_now(self):
        now = datetime(2025, 6, 1)
        assert calculate_next_run("daily", None, now) == datetime(2025, 6, 2)

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            calculate_next_run("yearly", datetime(2025, 1, 1))


class TestCompareValue:
    @pytest.mark.parametrize(
        "value,threshold,comparison,expected",
        [
            (5, 3, "greater_than", True),
            (3, 3, "greater_than", False),
            (2, 3, "less_than", True),
            (3, 3, "equals", True),
            (-30, 25, "percentage_change", True),
            (10, 25, "percentage_change", False),
            (10, 1, "sideways", False),
        ],
    )
    def test_comparisons(self, value, threshold, comparison, expected):
        assert compare_value(value, threshold, comparison) is expected


# ===== REGISTRY =====


class TestTaskRegistry:
    def test_default_tasks_registered(self, analytics, insights, alert_manager, clock):
        scheduler = AutomationScheduler(analytics, insights=insights, alert_manager=alert_manager, clock=clock)

        tasks = {task.task_id: task for task in scheduler.get_all_tasks()}

        assert set(tasks) == {
            "default_market_analysis",
            "default_user_recommendations",
            "default_performance_monitoring",
            "default_alert_check",
        }
        assert tasks["default_user_recommendations"].parameters == {"batchSize": 50}
        assert tasks["default_market_analysis"].frequency == "daily"

    def test_schedule_validates_type_and_frequency(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_task("coffee_break", "daily")
        with pytest.raises(ValueError):
            scheduler.schedule_task("market_analysis", "yearly")

    def test_schedule_sets_next_run(self, scheduler, fixed_now):
        task_id = scheduler.schedule_task("alert_check", "hourly")

        task = scheduler.get_task(task_id)
        assert task_id.startswith("task_")
        assert task.next_run == fixed_now + timedelta(hours=1)

    def test_update_frequency_recomputes_next_run(self, scheduler, fixed_now):
        last_run = fixed_now - timedelta(hours=2)
        task_id = scheduler.schedule_task("alert_check", "hourly", last_run=last_run)

        assert scheduler.update_task(task_id, frequency="daily") is True
        assert scheduler.get_task(task_id).next_run == last_run + timedelta(days=1)

    def test_update_unknown_field_rejected(self, scheduler):
        task_id = scheduler.schedule_task("alert_check", "hourly")

        with pytest.raises(ValueError):
            scheduler.update_task(task_id, colour="blue")

    def test_cancel_task(self, scheduler):
        task_id = scheduler.schedule_task("alert_check", "hourly")

        assert scheduler.cancel_task(task_id) is True
        assert scheduler.cancel_task(task_id) is False
        assert scheduler.update_task(task_id, active=False) is False

    def test_task_to_dict_serialises_dates(self, scheduler, fixed_now):
        task_id = scheduler.schedule_task("market_analysis", "daily")

        doc = task_to_dict(scheduler.get_task(task_id))

        assert doc["taskId"] == task_id
        assert doc["lastRun"] is None
        assert doc["nextRun"] == (fixed_now + timedelta(days=1)).isoformat()


class TestAlertRegistry:
    def test_create_validates(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.create_alert("weather", 10)
        with pytest.raises(ValueError):
            scheduler.create_alert("market_change", 10, comparison="roughly")

    def test_filter_by_user(self, scheduler):
        mine = scheduler.create_alert("performance_decline", 5, user_id="u1")
        scheduler.create_alert("market_change", 10)

        rules = scheduler.get_all_alerts("u1")

        assert [rule.rule_id for rule in rules] == [mine]
        assert len(scheduler.get_all_alerts()) == 2

    def test_update_and_delete(self, scheduler):
        rule_id = scheduler.create_alert("market_change", 10)

        assert scheduler.update_alert(rule_id, active=False) is True
        assert scheduler.get_alert(rule_id).active is False
        assert scheduler.delete_alert(rule_id) is True
        assert scheduler.get_alert(rule_id) is None

    def test_rule_to_dict(self):
        rule = AlertRule(rule_id="alert_1", type="opportunity", conditions=AlertConditions(threshold=1))

        assert rule.to_dict() == {
            "ruleId": "alert_1",
            "userId": None,
            "type": "opportunity",
            "conditions": {"threshold": 1, "comparison": "greater_than", "timeframe": "24h"},
            "notificationChannels": ["console"],
            "active": True,
            "lastTriggered": None,
        }


# ===== TASK PROCESSING =====


class TestProcessPendingTasks:
    @pytest.mark.asyncio
    async def test_due_task_runs_and_reschedules(self, scheduler, insights, fixed_now):
        task_id = scheduler.schedule_task("market_analysis", "daily")
        later = fixed_now + timedelta(days=1)

        executed = await scheduler.process_pending_tasks(later)

        task = scheduler.get_task(task_id)
        assert executed == 1
        assert task.last_run == later
        assert task.next_run == later + timedelta(days=1)
        assert task.results["totalInsights"] == 0
        insights.generate_automated_market_insights.assert_awaited_once_with(None)

    @pytest.mark.asyncio
    async def test_not_due_tasks_skipped(self, scheduler, insights, fixed_now):
        scheduler.schedule_task("market_analysis", "daily")

        assert await scheduler.process_pending_tasks(fixed_now) == 0
        insights.generate_automated_market_insights.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inactive_task_skipped(self, scheduler, fixed_now):
        scheduler.schedule_task("market_analysis", "hourly", active=False)

        assert await scheduler.process_pending_tasks(fixed_now + timedelta(days=1)) == 0

    @pytest.mark.asyncio
    async def test_failing_task_does_not_stop_others(self, scheduler, analytics, fixed_now):
        analytics.get_dashboard_metrics.side_effect = RuntimeError("store down")
        failing = scheduler.schedule_task("performance_monitoring", "hourly")
        working = scheduler.schedule_task("alert_check", "hourly")
        later = fixed_now + timedelta(hours=2)

        executed = await scheduler.process_pending_tasks(later)

        assert executed == 1
        assert scheduler.get_task(failing).last_run is None
        assert scheduler.get_task(failing).next_run == fixed_now + timedelta(hours=1)
        assert scheduler.get_task(working).last_run == later

    @pytest.mark.asyncio
    async def test_market_analysis_notifies_critical_insights(self, scheduler, insights, alert_manager, fixed_now):
        insights.generate_automated_market_insights.return_value = [
            _insight(),
            _insight(type="trend", impact="medium", action_required=False),
        ]
        task_id = scheduler.schedule_task("market_analysis", "daily", {"generateReport": True})

        await scheduler.process_pending_tasks(fixed_now + timedelta(days=1))

        results = scheduler.get_task(task_id).results
        assert results["criticalInsights"] == 1
        assert results["report"] == {"type": "market"}
        assert alert_manager.alert.call_count == 1

    @pytest.mark.asyncio
    async def test_user_recommendations_counts_failures(self, scheduler, insights, fixed_now):
        insights.automate_user_recommendations.side_effect = [MagicMock(), RuntimeError("no user"), MagicMock()]
        task_id = scheduler.schedule_task(
            "user_recommendations", "weekly", {"userIds": ["a", "b", "c"], "batchSize": 2}
        )

        await scheduler.process_pending_tasks(fixed_now + timedelta(days=7))

        results = scheduler.get_task(task_id).results
        assert results["processedUsers"] == 3
        assert results["successfulRecommendations"] == 2
        assert results["failedRecommendations"] == 1

    @pytest.mark.asyncio
    async def test_persists_state_after_run(self, analytics, insights, alert_manager, clock, fixed_now):
        store = MagicMock()
        scheduler = AutomationScheduler(
            analytics, insights=insights, alert_manager=alert_manager,
            clock=clock, task_store=store, with_default_tasks=False,
        )
        task_id = scheduler.schedule_task("market_analysis", "daily")

        await scheduler.process_pending_tasks(fixed_now + timedelta(days=1))

        query, update, upsert = store.update_one.call_args[0]
        assert query == {"taskId": task_id}
        assert update["$set"]["taskId"] == task_id
        assert upsert is True


# ===== ALERTS =====


class TestCheckAlerts:
    @pytest.mark.asyncio
    async def test_opportunity_rule_triggers(self, scheduler, insights, alert_manager, fixed_now):
        insights.generate_automated_market_insights.return_value = [_insight()]
        rule_id = scheduler.create_alert("opportunity", 0, comparison="greater_than")

        result = await scheduler.check_alerts(fixed_now)

        assert result == {"total": 1, "triggered": 1}
        assert scheduler.get_alert(rule_id).last_triggered == fixed_now
        assert alert_manager.alert.call_count == 1

    @pytest.mark.asyncio
    async def test_minimum_interval_suppresses_refire(self, scheduler, insights, alert_manager, fixed_now):
        insights.generate_automated_market_insights.return_value = [_insight()]
        scheduler.create_alert("opportunity", 0)

        await scheduler.check_alerts(fixed_now)
        second = await scheduler.check_alerts(fixed_now + timedelta(hours=3, minutes=59))
        third = await scheduler.check_alerts(fixed_now + timedelta(hours=4))

        assert second["triggered"] == 0
        assert third["triggered"] == 1
        assert alert_manager.alert.call_count == 2

    @pytest.mark.asyncio
    async def test_performance_decline_needs_user(self, scheduler, analytics, fixed_now):
        scheduler.create_alert("performance_decline", 5)

        result = await scheduler.check_alerts(fixed_now)

        assert result["triggered"] == 0
        analytics.get_user_analytics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_performance_decline_for_user(self, scheduler, analytics, fixed_now):
        user = MagicMock()
        user.application_metrics.success_rate = 10
        analytics.get_user_analytics.return_value = user
        scheduler.create_alert("performance_decline", 10, user_id="u1")

        result = await scheduler.check_alerts(fixed_now)

        assert result["triggered"] == 1
        analytics.get_user_analytics.assert_awaited_once_with("u1")

    @pytest.mark.asyncio
    async def test_failing_rule_is_isolated(self, scheduler, analytics, insights, fixed_now):
        analytics.get_dashboard_metrics.side_effect = RuntimeError("boom")
        insights.generate_automated_market_insights.return_value = [_insight()]
        scheduler.create_alert("market_change", 10)
        scheduler.create_alert("opportunity", 0)

        result = await scheduler.check_alerts(fixed_now)

        assert result == {"total": 2, "triggered": 1}

    @pytest.mark.asyncio
    async def test_inactive_rules_not_counted(self, scheduler, fixed_now):
        scheduler.create_alert("market_change", 10, active=False)

        assert await scheduler.check_alerts(fixed_now) == {"total": 0, "triggered": 0}


# ===== LIFECYCLE =====


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, scheduler):
        await scheduler.start()
        assert scheduler.is_running is True

        await scheduler.stop()
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_start_loads_persisted_tasks(self, analytics, insights, alert_manager, clock, fixed_now):
        store = MagicMock()
        store.find.return_value = [
            AutomationTask(
                task_id="task_saved", type="alert_check", frequency="hourly", next_run=fixed_now,
            ).to_document()
        ]
        scheduler = AutomationScheduler(
            analytics, insights=insights, alert_manager=alert_manager,
            clock=clock, task_store=store, with_default_tasks=False,
        )

        await scheduler.start()
        await scheduler.stop()

        assert scheduler.get_task("task_saved").frequency == "hourly"
