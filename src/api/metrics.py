from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "triage_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "triage_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

TASKS_CLASSIFIED_TOTAL = get_or_create_metric(
    "triage_tasks_classified_total",
    "Tasks classified on creation",
    Counter,
    labelnames=["category", "priority"],
)

RECLASSIFICATIONS_TOTAL = get_or_create_metric(
    "triage_reclassifications_total",
    "Task updates, split by whether classification was recomputed",
    Counter,
    labelnames=["recomputed"],
)

TASKS_STORED = get_or_create_metric(
    "triage_tasks_stored", "Tasks currently in the store", Gauge
)
