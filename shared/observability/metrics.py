from prometheus_client import Counter, Histogram

# Business Metrics
checkout_sessions_created_total = Counter(
    "checkout_sessions_created_total",
    "Payment sessions requested from the processor",
    ["status"]  # Labels: 'success', 'failed'
)

orders_materialized_total = Counter(
    "orders_materialized_total",
    "Completion signals handled by the order materializer",
    ["trigger", "outcome"]  # outcome: 'created', 'duplicate', 'unpaid', 'failed'
)

order_materialization_duration_seconds = Histogram(
    "order_materialization_duration_seconds",
    "Time spent turning a completion signal into an order",
    ["trigger"]
)

order_reconciliation_issues_total = Counter(
    "order_reconciliation_issues_total",
    "Orders left incomplete and needing manual reconciliation",
    ["reason"]  # Labels: 'items_invalid', 'items_missing', 'items_insert_failed', 'lookup_failed', 'reload_failed'
)

notification_failures_total = Counter(
    "notification_failures_total",
    "Transactional emails that could not be delivered",
    ["kind"]  # Labels: 'confirmation', 'status_update'
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Payment processor webhook events received",
    ["event_type"]
)
