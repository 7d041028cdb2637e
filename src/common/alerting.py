"""
Alert dispatch for the automation scheduler.

Triggered alert rules, critical market insights and failed health checks
all become an Alert. The manager routes it to the console plus whichever
channels the rule asked for, and drops repeats of the same alert inside
the suppression window.

Usage:
    from src.common.alerting import get_alert_manager, AlertLevel

    get_alert_manager().alert(
        AlertLevel.WARNING,
        "User engagement score dropped to 50",
        source="performance_monitoring",
        channels=["webhook"],
        metadata={"score": 50},
    )
"""

import hashlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger(__name__)


class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return getattr(logging, self.name)


WEBHOOK_COLORS = {
    AlertLevel.INFO: "#36a64f",
    AlertLevel.WARNING: "#ffcc00",
    AlertLevel.ERROR: "#ff6600",
    AlertLevel.CRITICAL: "#ff0000",
}


@dataclass
class Alert:
    """One notification; alerts with equal level, source and message share an id."""

    level: AlertLevel
    message: str
    source: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)
    alert_id: str = ""

    def __post_init__(self):
        if not self.alert_id:
            fingerprint = "|".join((self.level.value, self.source, self.message))
            self.alert_id = hashlib.sha1(fingerprint.encode()).hexdigest()[:12]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "level": self.level.value,
            "source": self.source,
            "message": self.message,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


class AlertNotifier(ABC):
    """A delivery channel. Alert rules address notifiers by `channel`."""

    channel: str = ""

    @abstractmethod
    def send(self, alert: Alert) -> bool:
        """Deliver the alert; False when it was not delivered."""

    @abstractmethod
    def is_configured(self) -> bool:
        ...


class ConsoleNotifier(AlertNotifier):
    channel = "console"

    def __init__(self, logger_instance: Optional[logging.Logger] = None):
        self._logger = logger_instance or logger

    def send(self, alert: Alert) -> bool:
        self._logger.log(
            alert.level.log_level,
            f"[ALERT:{alert.level.name}] [{alert.source}] {alert.message}",
            extra={"alert_metadata": alert.metadata},
        )
        return True

    def is_configured(self) -> bool:
        return True


class WebhookNotifier(AlertNotifier):
    """Posts alerts to a Slack-compatible incoming webhook (SLACK_WEBHOOK_URL)."""

    channel = "webhook"

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url if webhook_url is not None else os.getenv("SLACK_WEBHOOK_URL", "")
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    def build_payload(self, alert: Alert) -> Dict[str, Any]:
        attachment = {
            "color": WEBHOOK_COLORS.get(alert.level, "#808080"),
            "title": f"{alert.level.name}: {alert.source}",
            "text": alert.message,
            "fields": [
                {"title": str(key), "value": str(value), "short": True}
                for key, value in alert.metadata.items()
            ],
            "ts": int(alert.timestamp.timestamp()),
        }
        return {"attachments": [attachment]}

    def send(self, alert: Alert) -> bool:
        if not self.is_configured():
            logger.debug("Webhook URL not set, alert not posted")
            return False
        try:
            response = requests.post(self.webhook_url, json=self.build_payload(alert), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Webhook alert {alert.alert_id} failed: {e}")
            return False
        return True


class AlertManager:
    """
    Routes alerts to notifiers and keeps a bounded history.

    The console channel always receives an alert; any other channel only
    when the caller names it. An alert id seen again within
    `suppression_window` seconds is dropped unless `force` is set.
    """

    def __init__(
        self,
        suppression_window: float = 300.0,
        max_history: int = 1000,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.suppression_window = suppression_window
        self._clock = clock
        self._notifiers: Dict[str, AlertNotifier] = {}
        self._last_sent: Dict[str, datetime] = {}
        self._history: Deque[Alert] = deque(maxlen=max_history)
        self._lock = threading.Lock()
        self._enabled = os.getenv("ENABLE_ALERTING", "true").lower() == "true"

        self.add_notifier(ConsoleNotifier())
        webhook = WebhookNotifier()
        if webhook.is_configured():
            self.add_notifier(webhook)
            logger.info("Webhook alert channel enabled")

    @property
    def channels(self) -> List[str]:
        return list(self._notifiers)

    def add_notifier(self, notifier: AlertNotifier) -> None:
        """Register (or replace) the notifier for its channel; unconfigured ones are ignored."""
        if notifier.is_configured():
            self._notifiers[notifier.channel] = notifier

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def alert(
        self,
        level: AlertLevel,
        message: str,
        source: str,
        channels: Optional[Iterable[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        force: bool = False,
    ) -> bool:
        """
        Record and deliver an alert.

        Returns True when at least one notifier delivered it. Suppressed
        alerts and a disabled manager return False.
        """
        if not self._enabled:
            return False

        alert = Alert(level=level, message=message, source=source, metadata=metadata or {})
        if not self._record(alert, force):
            logger.debug(f"Suppressed repeat alert {alert.alert_id} from {source}")
            return False

        delivered = False
        for channel in dict.fromkeys([ConsoleNotifier.channel, *(channels or [])]):
            notifier = self._notifiers.get(channel)
            if notifier is None:
                logger.debug(f"Alert channel '{channel}' has no notifier")
                continue
            try:
                delivered = notifier.send(alert) or delivered
            except Exception as e:
                logger.error(f"Alert channel '{channel}' raised: {e}")
        return delivered

    def _record(self, alert: Alert, force: bool) -> bool:
        now = self._clock()
        with self._lock:
            # Forget ids that can no longer suppress anything
            self._last_sent = {
                alert_id: sent for alert_id, sent in self._last_sent.items()
                if (now - sent).total_seconds() < self.suppression_window
            }
            if alert.alert_id in self._last_sent and not force:
                return False
            self._last_sent[alert.alert_id] = now
            self._history.append(alert)
        return True

    def get_history(
        self,
        level: Optional[AlertLevel] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[Alert]:
        with self._lock:
            alerts = list(self._history)
        matching = [
            alert for alert in alerts
            if (level is None or alert.level == level) and (source is None or alert.source == source)
        ]
        return matching[-limit:]

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            self._last_sent.clear()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            alerts = list(self._history)
            suppressing = len(self._last_sent)
        return {
            "enabled": self._enabled,
            "channels": self.channels,
            "history_count": len(alerts),
            "suppression_rules_count": suppressing,
            "by_level": dict(Counter(alert.level.value for alert in alerts)),
            "by_source": dict(Counter(alert.source for alert in alerts)),
        }


_global_manager: Optional[AlertManager] = None


def get_alert_manager() -> AlertManager:
    global _global_manager
    if _global_manager is None:
        _global_manager = AlertManager()
    return _global_manager


def reset_alert_manager() -> None:
    """Drop the shared manager (tests)."""
    global _global_manager
    if _global_manager is not None:
        _global_manager.clear_history()
    _global_manager = None
