"""Prometheus metrics for feed usage, financing outcomes and lifecycle transitions"""

from prometheus_client import Counter, Histogram

# Listing feed metrics
listing_feed_counter = Counter(
    "carmarket_listing_feed_total",
    "Ranked listing feeds served",
    ["sort_by"],
)

# Financing metrics
financing_match_counter = Counter(
    "carmarket_financing_match_total",
    "Financing match requests",
    ["outcome"],  # matched | no_offer
)

# Lifecycle metrics
transition_counter = Counter(
    "carmarket_transition_total",
    "State transitions applied",
    ["entity", "from_status", "to_status"],
)

override_counter = Counter(
    "carmarket_override_total",
    "Administrative status overrides applied",
    ["entity"],
)

validation_failure_counter = Counter(
    "carmarket_validation_failures_total",
    "Requests rejected by domain validation",
    ["entity"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_match(partner_count: int) -> None:
    """Record financing outcome for monitoring no-offer rates"""
    outcome = "matched" if partner_count > 0 else "no_offer"
    financing_match_counter.labels(outcome=outcome).inc()


def record_transition(entity: str, from_status: str, to_status: str) -> None:
    transition_counter.labels(entity=entity, from_status=from_status, to_status=to_status).inc()
