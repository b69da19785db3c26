from prometheus_client import Counter


reminders_reconciled_total = Counter(
    "reminders_reconciled_total",
    "Total per-user reconciliations",
)

reminder_config_errors_total = Counter(
    "reminder_config_errors_total",
    "Reminder keys rejected during reconciliation",
)

agent_ticks_total = Counter(
    "reminder_agent_ticks_total",
    "Total delivery agent poll cycles",
)

reminders_delivered_total = Counter(
    "reminders_delivered_total",
    "Total notifications handed to the sink",
)

reminders_delivery_failed_total = Counter(
    "reminders_delivery_failed_total",
    "Total notifications the sink rejected",
)

reminders_stale_skipped_total = Counter(
    "reminders_stale_skipped_total",
    "Reminders older than the catch-up window advanced without notifying",
)

reminders_cas_conflicts_total = Counter(
    "reminders_cas_conflicts_total",
    "Deliveries skipped because another agent advanced the reminder first",
)
