"""Prometheus metrics for rate limiting, risk assessments and HTTP latency"""

from prometheus_client import Counter, Histogram

# Rate limit metrics
rate_limit_decision_counter = Counter(
    "merchant_rate_limit_decisions_total",
    "Rate limit checks by protected function and outcome",
    ["function", "outcome"],  # allowed | denied | skipped | fail_open
)

rate_limit_swept_counter = Counter(
    "merchant_rate_limit_swept_total",
    "Stale rate limit records deleted by the sweep",
)

rate_limit_store_latency_histogram = Histogram(
    "merchant_rate_limit_store_seconds",
    "Rate limit store call latency",
    ["operation"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Risk metrics
risk_assessment_counter = Counter(
    "merchant_risk_assessments_total",
    "Merchant risk assessments by tier",
    ["level"],  # low | medium | high | critical
)

risk_score_histogram = Histogram(
    "merchant_risk_score",
    "Distribution of total merchant risk scores",
    buckets=[10, 25, 40, 50, 60, 75, 90, 100],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_risk_assessment(total_score: int, level: str) -> None:
    """Record risk tier and score distribution"""
    risk_assessment_counter.labels(level=level).inc()
    risk_score_histogram.observe(total_score)
