from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "HTTP requests that ended in a 5xx",
    ["method", "path", "status"],
)

ARCHIVE_CACHE_LOOKUPS = Counter(
    "archive_cache_lookups_total",
    "Archive cache lookups",
    ["cache_class", "result"],
)
ARCHIVE_UPSTREAM_ERRORS = Counter(
    "archive_upstream_errors_total",
    "Failed requests to the newspaper archive",
    ["status"],
)
WEBHOOK_EVENTS = Counter(
    "stripe_webhook_events_total",
    "Stripe webhook deliveries",
    ["event_type", "outcome"],
)
