"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"hackadmin_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"hackadmin_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

QUEUE_TRANSITIONS_TOTAL = Counter(
	"hackadmin_queue_transitions_total",
	"Moderation queue state transitions",
	["transition"],
)

QUEUE_CLAIM_CONFLICTS_TOTAL = Counter(
	"hackadmin_queue_conflicts_total",
	"Conditional queue writes rejected by the store",
	["operation"],
)

QUEUE_PRIORITY_ASSIGNED = Histogram(
	"hackadmin_queue_priority",
	"Priority stored on queue items at insert or merge",
	["item_type"],
	buckets=(1, 2, 3, 4, 5, 6, 7, 8, 9, 10),
)

BAN_CASCADE_EFFECTS_TOTAL = Counter(
	"hackadmin_ban_cascade_effects_total",
	"Ban cascade sub-actions by effect and outcome",
	["effect", "outcome"],
)

BAN_CASCADE_SECONDS = Histogram(
	"hackadmin_ban_cascade_seconds",
	"Wall time spent executing a ban with its cascade",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

SUBMISSION_REVIEW_DECISIONS_TOTAL = Counter(
	"hackadmin_submission_review_decisions_total",
	"Hackathon submission review decisions",
	["decision", "flagged"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)
