from __future__ import annotations

from datetime import datetime, timezone

from mockapi import monitoring, schemas
from mockapi.notifications import NotificationStore


def test_retry_rate():
    assert monitoring.retry_rate(1000, 17) == 1.7
    assert monitoring.retry_rate(10, 0) == 0.0
    assert monitoring.queue_overview().retry_rate == 1.7


def test_workflow_health_timestamps():
    now = datetime(2024, 1, 15, 10, 20, tzinfo=timezone.utc)

    workflows = monitoring.workflow_health(now)

    assert [workflow.last_success for workflow in workflows] == [
        "2024-01-15 10:15",
        "2024-01-15 10:10",
        "2024-01-15 10:05",
    ]
    assert workflows[1].last_error == "2024-01-14 10:20"


def test_metrics_default_to_last_thirty_days():
    now = datetime(2024, 3, 31, tzinfo=timezone.utc)

    metrics = monitoring.hospital_metrics("1", now=now)

    assert metrics.range.start == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert metrics.range.end == now
    assert sum(item.count for item in metrics.by_status) == metrics.total_appointments


def test_anomalies_are_raised_once(storage):
    feed = NotificationStore(storage)
    detector = monitoring.AnomalyDetector(feed)
    overview = schemas.QueueOverview(queued=1, sent=100, failed=12, retry_rate=10.7)

    raised = detector.inspect_queue(overview)
    again = detector.inspect_queue(overview)

    assert [item.title for item in raised] == [
        "High Failure Rate Detected",
        "High Retry Rate Warning",
    ]
    assert again == []
    assert all(item.type == schemas.NotificationType.system_abnormal for item in raised)
    assert feed.unread_count() == 2


def test_healthy_queue_raises_nothing(storage):
    detector = monitoring.AnomalyDetector(NotificationStore(storage))

    assert detector.inspect_queue(
        schemas.QueueOverview(queued=0, sent=100, failed=1, retry_rate=1.0)
    ) == []


def test_workflow_errors_are_reported_per_workflow(storage):
    feed = NotificationStore(storage)
    detector = monitoring.AnomalyDetector(feed)
    workflows = monitoring.workflow_health()

    raised = detector.inspect_workflows(workflows)
    detector.inspect_workflows(workflows)

    assert len(raised) == 1
    assert raised[0].type == schemas.NotificationType.n8n_workflow_error
    assert raised[0].route == "/super/n8n-logs"
    assert raised[0].metadata == {"workflow": "Workflow B"}
    assert len(feed.notifications()) == 1
