"""Monitoring snapshots served by the simulated API and anomaly detection."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from . import schemas
from .notifications import NotificationStore

logger = logging.getLogger(__name__)

FAILED_MESSAGES_THRESHOLD = 10
RETRY_RATE_THRESHOLD = 5.0
MONITORING_ROUTE = "/super/users/monitoring"
WORKFLOW_LOGS_ROUTE = "/super/n8n-logs"


def retry_rate(sent: int, failed: int) -> float:
    if failed <= 0:
        return 0.0
    return round(failed / (sent + failed) * 100, 1)


def queue_overview() -> schemas.QueueOverview:
    queued, sent, failed = 150, 1000, 17
    return schemas.QueueOverview(
        queued=queued,
        sent=sent,
        failed=failed,
        retry_rate=retry_rate(sent, failed),
        providers=[
            schemas.ProviderQueue(name="Provider A", queued=120, sent=500, failed=10),
            schemas.ProviderQueue(name="Provider B", queued=80, sent=300, failed=5),
            schemas.ProviderQueue(name="Provider C", queued=50, sent=200, failed=2),
        ],
    )


def notifications_breakdown() -> list[schemas.ChannelBreakdown]:
    rows = [
        ("Email", "Provider A", schemas.DeliveryStatus.queued, 50, 10, "up"),
        ("Email", "Provider A", schemas.DeliveryStatus.sent, 200, 5, "down"),
        ("Email", "Provider A", schemas.DeliveryStatus.failed, 2, 20, "up"),
        ("SMS", "Provider B", schemas.DeliveryStatus.queued, 30, 5, "up"),
        ("SMS", "Provider B", schemas.DeliveryStatus.sent, 150, 2, "down"),
    ]
    return [
        schemas.ChannelBreakdown(
            channel=channel,
            provider=provider,
            status=status,
            count=count,
            trend=trend,
            trend_direction=direction,
        )
        for channel, provider, status, count, trend, direction in rows
    ]


def _stamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M")


def workflow_health(now: Optional[datetime] = None) -> list[schemas.WorkflowHealth]:
    now = now or datetime.now(timezone.utc)
    minute = timedelta(minutes=1)
    return [
        schemas.WorkflowHealth(
            name="Workflow A",
            last_success=_stamp(now - 5 * minute),
            last_error=None,
            avg_duration="2s",
        ),
        schemas.WorkflowHealth(
            name="Workflow B",
            last_success=_stamp(now - 10 * minute),
            last_error=_stamp(now - timedelta(hours=24)),
            avg_duration="3s",
        ),
        schemas.WorkflowHealth(
            name="Workflow C",
            last_success=_stamp(now - 15 * minute),
            last_error=None,
            avg_duration="1s",
        ),
    ]


def hospital_metrics(
    hospital_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> schemas.HospitalMetrics:
    """Appointment and delivery figures for a hospital over a date range.

    The range defaults to the last 30 days ending now.
    """

    now = now or datetime.now(timezone.utc)
    return schemas.HospitalMetrics(
        hospital_id=hospital_id,
        range=schemas.MetricsRange(
            start=start or now - timedelta(days=30),
            end=end or now,
        ),
        total_appointments=245,
        by_status=[
            schemas.StatusCount(status="scheduled", count=180),
            schemas.StatusCount(status="completed", count=50),
            schemas.StatusCount(status="cancelled", count=15),
        ],
        notif_breakdown=[
            schemas.ChannelDelivery(channel="email", sent=1200, failed=5),
            schemas.ChannelDelivery(channel="sms", sent=800, failed=2),
            schemas.ChannelDelivery(channel="voice", sent=150, failed=1),
        ],
    )


class AnomalyDetector:
    """Raises a notification the first time each monitoring issue is seen."""

    def __init__(self, notifications: NotificationStore) -> None:
        self.notifications = notifications
        self._raised: set[str] = set()

    def _raise_once(self, issue: str, event: schemas.NotificationEvent) -> Optional[schemas.Notification]:
        if issue in self._raised:
            return None
        self._raised.add(issue)
        logger.warning("Monitoring issue detected: %s", issue)
        return self.notifications.add(event)

    def inspect_queue(self, overview: schemas.QueueOverview) -> list[schemas.Notification]:
        raised = []
        if overview.failed > FAILED_MESSAGES_THRESHOLD:
            raised.append(
                self._raise_once(
                    "high_failures",
                    schemas.NotificationEvent(
                        type=schemas.NotificationType.system_abnormal,
                        title="High Failure Rate Detected",
                        message=(
                            f"System has detected {overview.failed} failed messages. "
                            "Please check the monitoring page."
                        ),
                        route=MONITORING_ROUTE,
                    ),
                )
            )
        if overview.retry_rate > RETRY_RATE_THRESHOLD:
            raised.append(
                self._raise_once(
                    "high_retry",
                    schemas.NotificationEvent(
                        type=schemas.NotificationType.system_abnormal,
                        title="High Retry Rate Warning",
                        message=(
                            f"System retry rate is at {overview.retry_rate}%. "
                            "This may indicate system issues."
                        ),
                        route=MONITORING_ROUTE,
                    ),
                )
            )
        return [notification for notification in raised if notification]

    def inspect_workflows(
        self, workflows: Iterable[schemas.WorkflowHealth]
    ) -> list[schemas.Notification]:
        raised = []
        for workflow in workflows:
            if not workflow.last_error:
                continue
            notification = self._raise_once(
                f"workflow_error_{workflow.name}",
                schemas.NotificationEvent(
                    type=schemas.NotificationType.n8n_workflow_error,
                    title="Workflow Error Detected",
                    message=(
                        f'Workflow "{workflow.name}" encountered an error. '
                        f"Last error: {workflow.last_error}"
                    ),
                    route=WORKFLOW_LOGS_ROUTE,
                    metadata={"workflow": workflow.name},
                ),
            )
            if notification:
                raised.append(notification)
        return raised
