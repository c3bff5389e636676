from .setup import setup_observability
from .metrics import (
    checkout_sessions_created_total,
    orders_materialized_total,
    order_materialization_duration_seconds,
    order_reconciliation_issues_total,
    notification_failures_total,
    webhook_events_total
)
