from prometheus_client import Counter, Histogram

ORDER_OUTCOMES = Counter(
    "pos_orders_total",
    "Order placement attempts by order type and outcome",
    ["type", "outcome"],  # placed | <error_code> | error
)

ORDER_PLACEMENT_TIME = Histogram(
    "pos_order_placement_duration_seconds",
    "Time from pre-check to commit of a placed order",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ORDER_STATUS_CHANGES = Counter(
    "pos_order_status_changes_total",
    "Order status transitions",
    ["status"],  # completed | cancelled
)

LOW_STOCK_ALERTS = Counter(
    "pos_low_stock_alerts_total",
    "Order deductions that left a material below its minimum stock",
    ["material"],
)

EVENTS_PUBLISHED = Counter(
    "pos_events_published_total",
    "Domain events handed to Kafka",
    ["topic", "outcome"],  # ok | failed
)
