"""
Automation Scheduler

In-memory registry of periodic automation tasks and alert rules, driven by
two asyncio loops owned by the scheduler:

- Task loop (every TASK_SCAN_INTERVAL_SECONDS): runs each active task whose
  next_run is due, then reschedules it one period after the run.
- Alert loop (every ALERT_SCAN_INTERVAL_SECONDS): evaluates each active alert
  rule and dispatches triggered rules through the AlertManager.

A failing task is logged and left unscheduled (it is retried on the next
scan); there is no retry/backoff. When PERSIST_AUTOMATION_STATE is set, task
state is upserted to the automation_tasks collection after every run and
reloaded on start().
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from src.common.alerting import AlertLevel, AlertManager, get_alert_manager
from src.common.config import Config
from src.common.repositories import CollectionRepositoryInterface, get_repository

from .insights import MarketInsightsService
from .metrics import add_months, safe_ratio, utcnow
from .models import DashboardMetrics
from .service import AnalyticsService

logger = logging.getLogger(__name__)

TASK_TYPES = ("market_analysis", "user_recommendations", "performance_monitoring", "alert_check")
FREQUENCIES = ("hourly", "daily", "weekly", "monthly")
ALERT_TYPES = ("market_change", "opportunity", "performance_decline", "skill_demand")
COMPARISONS = ("greater_than", "less_than", "equals", "percentage_change")

# Minimum seconds between two firings of the same rule
MIN_TRIGGER_INTERVALS = {
    "market_change": 60 * 60,
    "opportunity": 4 * 60 * 60,
    "performance_decline": 24 * 60 * 60,
    "skill_demand": 12 * 60 * 60,
}
DEFAULT_MIN_TRIGGER_INTERVAL = 60 * 60

# Reference values the change-based alerts compare against
MARKET_BASELINE_SUCCESS_RATE = 20
USER_BASELINE_SUCCESS_RATE = 25

SYSTEM_HEALTH_ALERT_SCORE = 80
USER_ENGAGEMENT_ALERT_SCORE = 70

DEFAULT_RECOMMENDATION_BATCH = 10


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def generate_task_id() -> str:
    return f"task_{int(time.time() * 1000)}_{_random_suffix()}"


def generate_rule_id() -> str:
    return f"alert_{int(time.time() * 1000)}_{_random_suffix()}"


def calculate_next_run(frequency: str, last_run: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """One period after last_run (or after now when the task never ran)."""
    base = last_run or now or utcnow()
    if frequency == "hourly":
        return base + timedelta(hours=1)
    if frequency == "daily":
        return base + timedelta(days=1)
    if frequency == "weekly":
        return base + timedelta(days=7)
    if frequency == "monthly":
        return add_months(base, 1)
    raise ValueError(f"Unknown frequency: {frequency}")


def compare_value(value: float, threshold: float, comparison: str) -> bool:
    if comparison == "greater_than":
        return value > threshold
    if comparison == "less_than":
        return value < threshold
    if comparison == "equals":
        return value == threshold
    if comparison == "percentage_change":
        return abs(value) >= threshold
    return False


@dataclass
class AutomationTask:
    """One periodic job and the results of its last run."""
    task_id: str
    type: str
    frequency: str
    next_run: datetime
    last_run: Optional[datetime] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    active: bool = True
    results: Optional[Dict[str, Any]] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "type": self.type,
            "frequency": self.frequency,
            "lastRun": self.last_run,
            "nextRun": self.next_run,
            "parameters": self.parameters,
            "active": self.active,
            "results": self.results,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AutomationTask":
        return cls(
            task_id=doc["taskId"],
            type=doc["type"],
            frequency=doc["frequency"],
            next_run=doc["nextRun"],
            last_run=doc.get("lastRun"),
            parameters=doc.get("parameters") or {},
            active=doc.get("active", True),
            results=doc.get("results"),
        )


@dataclass
class AlertConditions:
    threshold: float
    comparison: str = "greater_than"
    timeframe: str = "24h"


@dataclass
class AlertRule:
    """User- or system-level condition evaluated on every alert scan."""
    rule_id: str
    type: str
    conditions: AlertConditions
    user_id: Optional[str] = None
    notification_channels: List[str] = field(default_factory=lambda: ["console"])
    active: bool = True
    last_triggered: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "userId": self.user_id,
            "type": self.type,
            "conditions": asdict(self.conditions),
            "notificationChannels": list(self.notification_channels),
            "active": self.active,
            "lastTriggered": self.last_triggered.isoformat() if self.last_triggered else None,
        }


def task_to_dict(task: AutomationTask) -> Dict[str, Any]:
    """JSON-friendly view of a task for the HTTP surface."""
    doc = task.to_document()
    doc["lastRun"] = task.last_run.isoformat() if task.last_run else None
    doc["nextRun"] = task.next_run.isoformat()
    return doc


class AutomationScheduler:
    """
    Task and alert-rule registries with an explicit start/stop lifecycle.

    Args:
        analytics: Report service the tasks read from
        insights: Insight service (built from `analytics` if omitted)
        alert_manager: Dispatcher for triggered alerts
        clock: Returns "now"; injected in tests
        task_store: Repository for persisted task state (None disables it)
        with_default_tasks: Register the four built-in tasks
    """

    def __init__(
        self,
        analytics: AnalyticsService,
        insights: Optional[MarketInsightsService] = None,
        alert_manager: Optional[AlertManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
        task_store: Optional[CollectionRepositoryInterface] = None,
        with_default_tasks: bool = True,
    ):
        self.analytics = analytics
        self.insights = insights or MarketInsightsService(analytics)
        self.alert_manager = alert_manager if alert_manager is not None else get_alert_manager()
        self._clock = clock or utcnow
        self._task_store = task_store

        self._tasks: Dict[str, AutomationTask] = {}
        self._rules: Dict[str, AlertRule] = {}
        self._loops: List[asyncio.Task] = []
        self.is_running = False

        self._executors = {
            "market_analysis": self._run_market_analysis,
            "user_recommendations": self._run_user_recommendations,
            "performance_monitoring": self._run_performance_monitoring,
            "alert_check": self._run_alert_check,
        }

        if with_default_tasks:
            self._register_default_tasks()

    # ===== Tasks =====

    def schedule_task(
        self,
        type: str,
        frequency: str,
        parameters: Optional[Dict[str, Any]] = None,
        active: bool = True,
        last_run: Optional[datetime] = None,
        task_id: Optional[str] = None,
    ) -> str:
        if type not in TASK_TYPES:
            raise ValueError(f"Unknown task type: {type}")
        if frequency not in FREQUENCIES:
            raise ValueError(f"Unknown frequency: {frequency}")

        task = AutomationTask(
            task_id=task_id or generate_task_id(),
            type=type,
            frequency=frequency,
            next_run=calculate_next_run(frequency, last_run, self._clock()),
            last_run=last_run,
            parameters=parameters or {},
            active=active,
        )
        self._tasks[task.task_id] = task
        return task.task_id

    def cancel_task(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def update_task(self, task_id: str, **updates) -> bool:
        """Apply field updates; a frequency change recomputes next_run from last_run."""
        task = self._tasks.get(task_id)
        if task is None:
            return False

        for name, value in updates.items():
            if not hasattr(task, name) or name == "task_id":
                raise ValueError(f"Unknown task field: {name}")
            setattr(task, name, value)

        if "frequency" in updates:
            task.next_run = calculate_next_run(task.frequency, task.last_run, self._clock())
        return True

    def get_task(self, task_id: str) -> Optional[AutomationTask]:
        return self._tasks.get(task_id)

    def get_all_tasks(self) -> List[AutomationTask]:
        return list(self._tasks.values())

    def _register_default_tasks(self) -> None:
        self.schedule_task("market_analysis", "daily", {"generateReport": False}, task_id="default_market_analysis")
        self.schedule_task("user_recommendations", "weekly", {"batchSize": 50}, task_id="default_user_recommendations")
        self.schedule_task("performance_monitoring", "hourly", task_id="default_performance_monitoring")
        self.schedule_task("alert_check", "hourly", task_id="default_alert_check")

    # ===== Alert rules =====

    def create_alert(
        self,
        type: str,
        threshold: float,
        comparison: str = "greater_than",
        timeframe: str = "24h",
        user_id: Optional[str] = None,
        notification_channels: Optional[List[str]] = None,
        active: bool = True,
    ) -> str:
        if type not in ALERT_TYPES:
            raise ValueError(f"Unknown alert type: {type}")
        if comparison not in COMPARISONS:
            raise ValueError(f"Unknown comparison: {comparison}")

        rule = AlertRule(
            rule_id=generate_rule_id(),
            type=type,
            conditions=AlertConditions(threshold=threshold, comparison=comparison, timeframe=timeframe),
            user_id=user_id,
            notification_channels=notification_channels or ["console"],
            active=active,
        )
        self._rules[rule.rule_id] = rule
        return rule.rule_id

    def update_alert(self, rule_id: str, **updates) -> bool:
        rule = self._rules.get(rule_id)
        if rule is None:
            return False

        for name, value in updates.items():
            if not hasattr(rule, name) or name == "rule_id":
                raise ValueError(f"Unknown alert field: {name}")
            setattr(rule, name, value)
        return True

    def delete_alert(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def get_alert(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules.get(rule_id)

    def get_all_alerts(self, user_id: Optional[str] = None) -> List[AlertRule]:
        rules = list(self._rules.values())
        if user_id is not None:
            rules = [rule for rule in rules if rule.user_id == user_id]
        return rules

    # ===== Lifecycle =====

    async def start(self) -> None:
        if self.is_running:
            return

        if self._task_store is not None:
            await self._load_task_state()

        self.is_running = True
        self._loops = [
            asyncio.create_task(self._loop(Config.TASK_SCAN_INTERVAL_SECONDS, self.process_pending_tasks)),
            asyncio.create_task(self._loop(Config.ALERT_SCAN_INTERVAL_SECONDS, self.check_alerts)),
        ]
        logger.info(f"Automation scheduler started ({len(self._tasks)} tasks, {len(self._rules)} alert rules)")

    async def stop(self) -> None:
        self.is_running = False
        for loop in self._loops:
            loop.cancel()
        for loop in self._loops:
            try:
                await loop
            except asyncio.CancelledError:
                pass
        self._loops = []
        logger.info("Automation scheduler stopped")

    async def _loop(self, interval: float, tick: Callable[..., Any]) -> None:
        while self.is_running:
            await asyncio.sleep(interval)
            try:
                await tick()
            except Exception as e:
                logger.exception(f"Automation scan failed: {e}")

    # ===== Task processing =====

    async def process_pending_tasks(self, now: Optional[datetime] = None) -> int:
        """Run every active task due at `now`. Returns the number that succeeded."""
        now = now or self._clock()
        due = [task for task in self._tasks.values() if task.active and task.next_run <= now]

        executed = 0
        for task in due:
            try:
                await self.execute_task(task)
            except Exception as e:
                logger.error(f"Error executing task {task.task_id}: {e}", exc_info=True)
                continue

            task.last_run = now
            task.next_run = calculate_next_run(task.frequency, now)
            executed += 1
            logger.info(f"Task {task.task_id} executed successfully")
            await self._save_task_state(task)

        return executed

    async def execute_task(self, task: AutomationTask) -> None:
        executor = self._executors.get(task.type)
        if executor is None:
            raise ValueError(f"Unknown task type: {task.type}")
        await executor(task)

    async def _run_market_analysis(self, task: AutomationTask) -> None:
        location = task.parameters.get("location")
        insights = await self.insights.generate_automated_market_insights(location)
        critical = [insight for insight in insights if insight.impact == "high" and insight.action_required]

        task.results = {
            "insights": [insight.to_response() for insight in insights],
            "totalInsights": len(insights),
            "criticalInsights": len(critical),
            "executedAt": self._clock().isoformat(),
        }

        if task.parameters.get("generateReport"):
            task.results["report"] = await self.analytics.generate_report("market", {"location": location})

        for insight in critical:
            await self._notify(
                AlertLevel.WARNING,
                f"{insight.title}: {insight.description}",
                source="market_analysis",
                metadata={"location": location or "all markets"},
            )

    async def _run_user_recommendations(self, task: AutomationTask) -> None:
        user_ids = task.parameters.get("userIds")
        if user_ids is None:
            week_ago = self._clock() - timedelta(days=7)
            user_ids = await asyncio.to_thread(self.analytics.queries.active_user_ids, week_ago)

        batch_size = task.parameters.get("batchSize") or DEFAULT_RECOMMENDATION_BATCH
        succeeded = failed = 0

        for start in range(0, len(user_ids), batch_size):
            batch = user_ids[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.insights.automate_user_recommendations(user_id) for user_id in batch),
                return_exceptions=True,
            )
            for user_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    failed += 1
                    logger.warning(f"Recommendations failed for user {user_id}: {outcome}")
                else:
                    succeeded += 1

        task.results = {
            "processedUsers": succeeded + failed,
            "successfulRecommendations": succeeded,
            "failedRecommendations": failed,
            "executedAt": self._clock().isoformat(),
        }

    async def _run_performance_monitoring(self, task: AutomationTask) -> None:
        dashboard = await self.analytics.get_dashboard_metrics()
        performance = assess_performance(dashboard)
        alerts_triggered = 0

        if performance["systemHealth"]["score"] < SYSTEM_HEALTH_ALERT_SCORE:
            await self._notify(
                AlertLevel.WARNING,
                f"System health score {performance['systemHealth']['score']}: "
                + ", ".join(performance["systemHealth"]["issues"]),
                source="system_health",
            )
            alerts_triggered += 1

        if performance["userEngagement"]["score"] < USER_ENGAGEMENT_ALERT_SCORE:
            await self._notify(
                AlertLevel.WARNING,
                f"User engagement score {performance['userEngagement']['score']}",
                source="user_engagement",
                metadata=performance["userEngagement"]["metrics"],
            )
            alerts_triggered += 1

        task.results = {
            "performance": performance,
            "alertsTriggered": alerts_triggered,
            "executedAt": self._clock().isoformat(),
        }

    async def _run_alert_check(self, task: AutomationTask) -> None:
        checked = await self.check_alerts()
        task.results = {
            "alertsChecked": checked["total"],
            "alertsTriggered": checked["triggered"],
            "executedAt": self._clock().isoformat(),
        }

    # ===== Alert processing =====

    async def check_alerts(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Evaluate every active rule independently; returns {total, triggered}."""
        now = now or self._clock()
        active = [rule for rule in self._rules.values() if rule.active]
        triggered = 0

        for rule in active:
            try:
                if not await self.evaluate_alert(rule, now):
                    continue
                await self._dispatch(rule)
                rule.last_triggered = now
                triggered += 1
            except Exception as e:
                logger.error(f"Error evaluating alert {rule.rule_id}: {e}")

        return {"total": len(active), "triggered": triggered}

    async def evaluate_alert(self, rule: AlertRule, now: datetime) -> bool:
        if rule.last_triggered is not None:
            min_interval = MIN_TRIGGER_INTERVALS.get(rule.type, DEFAULT_MIN_TRIGGER_INTERVAL)
            if (now - rule.last_triggered).total_seconds() < min_interval:
                return False

        conditions = rule.conditions

        if rule.type == "market_change":
            dashboard = await self.analytics.get_dashboard_metrics()
            current = dashboard.overview.application_success_rate
            change = (current - MARKET_BASELINE_SUCCESS_RATE) / MARKET_BASELINE_SUCCESS_RATE * 100
            return compare_value(abs(change), conditions.threshold, conditions.comparison)

        if rule.type == "opportunity":
            insights = await self.insights.generate_automated_market_insights()
            opportunities = [i for i in insights if i.type == "opportunity" and i.impact == "high"]
            return compare_value(len(opportunities), conditions.threshold, conditions.comparison)

        if rule.type == "performance_decline":
            if not rule.user_id:
                return False
            user = await self.analytics.get_user_analytics(rule.user_id)
            decline = USER_BASELINE_SUCCESS_RATE - user.application_metrics.success_rate
            return compare_value(decline, conditions.threshold, conditions.comparison)

        if rule.type == "skill_demand":
            dashboard = await self.analytics.get_dashboard_metrics()
            return any(skill.growth > conditions.threshold for skill in dashboard.skills_analytics.emerging_skills)

        return False

    async def _notify(self, level: AlertLevel, message: str, source: str, **kwargs) -> bool:
        # Notifiers make blocking HTTP calls
        return await asyncio.to_thread(self.alert_manager.alert, level, message, source, **kwargs)

    async def _dispatch(self, rule: AlertRule) -> None:
        logger.info(f"Alert triggered: {rule.rule_id} - {rule.type}")
        await self._notify(
            AlertLevel.WARNING,
            f"Alert rule {rule.rule_id} triggered ({rule.type})",
            source=f"alert_rule:{rule.type}",
            channels=rule.notification_channels,
            metadata={"ruleId": rule.rule_id, "userId": rule.user_id, **asdict(rule.conditions)},
        )

    # ===== Persistence =====

    async def _save_task_state(self, task: AutomationTask) -> None:
        if self._task_store is None:
            return
        try:
            await asyncio.to_thread(
                self._task_store.update_one,
                {"taskId": task.task_id},
                {"$set": task.to_document()},
                True,
            )
        except Exception as e:
            logger.warning(f"Failed to persist state for task {task.task_id}: {e}")

    async def _load_task_state(self) -> None:
        try:
            docs = await asyncio.to_thread(self._task_store.find, {})
        except Exception as e:
            logger.warning(f"Failed to load automation task state: {e}")
            return

        for doc in docs:
            task = AutomationTask.from_document(doc)
            self._tasks[task.task_id] = task
        logger.info(f"Loaded {len(docs)} persisted automation tasks")


def assess_performance(dashboard: DashboardMetrics) -> Dict[str, Any]:
    """Score system health, engagement and data quality from the dashboard."""
    overview = dashboard.overview
    activity = dashboard.user_activity
    trends = dashboard.application_trends

    health_issues = []
    health = 100
    if overview.application_success_rate < 15:
        health_issues.append("Low application success rate")
        health -= 20
    if activity.user_retention_rate < 60:
        health_issues.append("Low user retention rate")
        health -= 15
    if dashboard.performance_metrics.average_response_time > 10:
        health_issues.append("High response time")
        health -= 10

    active_ratio = safe_ratio(activity.active_users_this_week, overview.total_users)
    application_activity = safe_ratio(trends.applications_this_week, overview.total_users)
    engagement = 100
    if active_ratio < 0.3:
        engagement -= 30
    if application_activity < 2:
        engagement -= 20

    quality_issues = []
    quality = 100
    if overview.total_applications < 100:
        quality_issues.append("Low data volume")
        quality -= 20
    if len(dashboard.skills_analytics.most_demanded_skills) < 10:
        quality_issues.append("Insufficient skills data")
        quality -= 15

    return {
        "systemHealth": {"score": max(health, 0), "issues": health_issues},
        "userEngagement": {
            "score": max(engagement, 0),
            "metrics": {
                "activeUsersRatio": active_ratio,
                "applicationActivity": application_activity,
                "newUsersGrowth": activity.new_users_this_week,
            },
        },
        "dataQuality": {"score": max(quality, 0), "issues": quality_issues},
        "trendsAnalysis": {
            "userGrowth": "growing" if activity.new_users_this_month > activity.new_users_this_week * 3 else "stable",
            "applicationVolume": "high" if trends.applications_this_month > 500 else "moderate",
            "skillsDemand": "evolving" if len(dashboard.skills_analytics.emerging_skills) > 5 else "stable",
        },
    }


def create_scheduler(analytics: AnalyticsService) -> AutomationScheduler:
    """Scheduler wired to the persisted task store when PERSIST_AUTOMATION_STATE is on."""
    task_store = get_repository(Config.AUTOMATION_TASKS_COLLECTION) if Config.PERSIST_AUTOMATION_STATE else None
    return AutomationScheduler(analytics, task_store=task_store)
