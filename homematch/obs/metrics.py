"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"homematch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"homematch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"homematch_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"homematch_socketio_events_total",
	"Socket.IO events emitted or received",
	["namespace", "event"],
)

COUPLES_CACHE_EVENTS = Counter(
	"homematch_couples_cache_events_total",
	"Household cache lookups, stores and invalidations",
	["cache", "result"],
)

COUPLES_MUTUAL_SOURCE = Counter(
	"homematch_couples_mutual_likes_source_total",
	"Where mutual likes were served from",
	["source"],
)

COUPLES_DEGRADED = Counter(
	"homematch_couples_degraded_total",
	"Couples reads collapsed to an empty result",
	["operation", "reason"],
)

COUPLES_MUTUAL_DETECTED = Counter(
	"homematch_couples_mutual_like_detected_total",
	"Likes that created a mutual like with a household partner",
)

COUPLES_INTERACTIONS = Counter(
	"homematch_couples_interactions_recorded_total",
	"Property interactions written",
	["interaction_type"],
)

COUPLES_ROWS_DROPPED = Counter(
	"homematch_couples_rows_dropped_total",
	"Gateway rows rejected by validation",
	["kind"],
)

REDIS_UP = Gauge("homematch_redis_up", "Redis readiness (1 ok, 0 failing)")
POSTGRES_UP = Gauge("homematch_postgres_up", "Postgres readiness (1 ok, 0 failing)")
DEPENDENCY_LATENCY = Histogram(
	"homematch_dependency_ping_seconds",
	"Readiness ping latency",
	["dependency"],
	buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_couples_cache(cache: str, result: str) -> None:
	COUPLES_CACHE_EVENTS.labels(cache=cache, result=result).inc()


def inc_mutual_source(source: str) -> None:
	COUPLES_MUTUAL_SOURCE.labels(source=source).inc()


def inc_couples_degraded(operation: str, reason: str) -> None:
	COUPLES_DEGRADED.labels(operation=operation, reason=reason).inc()


def inc_mutual_detected() -> None:
	COUPLES_MUTUAL_DETECTED.inc()


def inc_interaction_recorded(interaction_type: str) -> None:
	COUPLES_INTERACTIONS.labels(interaction_type=interaction_type).inc()


def inc_rows_dropped(kind: str, count: int = 1) -> None:
	if count > 0:
		COUPLES_ROWS_DROPPED.labels(kind=kind).inc(count)


def mark_redis(ok: bool, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		DEPENDENCY_LATENCY.labels(dependency="redis").observe(latency_seconds)


def mark_postgres(ok: bool, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		DEPENDENCY_LATENCY.labels(dependency="postgres").observe(latency_seconds)
