"""
Shared metrics configuration for the Posts service.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so several service instances (tests
    build one per case) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._setup_posts_metrics()

    def _setup_posts_metrics(self):
        """Set up posts-specific metrics."""
        self._metrics["cache_lookups_total"] = Counter(
            "cache_lookups_total",
            "Response cache lookups",
            ["route", "result"],
            registry=self.registry
        )

        self._metrics["cache_invalidations_total"] = Counter(
            "cache_invalidations_total",
            "Response cache invalidations",
            ["key"],
            registry=self.registry
        )

        self._metrics["rate_limit_rejections_total"] = Counter(
            "rate_limit_rejections_total",
            "Requests rejected by the rate limiter",
            registry=self.registry
        )

        self._metrics["auth_failures_total"] = Counter(
            "auth_failures_total",
            "Failed credential checks",
            ["reason"],
            registry=self.registry
        )

        self._metrics["backend_errors_total"] = Counter(
            "backend_errors_total",
            "Post store failures",
            ["operation"],
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_cache_lookup(self, route: str, hit: bool):
        """Record a response cache lookup."""
        self._metrics["cache_lookups_total"].labels(route=route, result="hit" if hit else "miss").inc()

    def record_cache_invalidation(self, key: str):
        self._metrics["cache_invalidations_total"].labels(key=key).inc()

    def record_rate_limit_rejection(self):
        self._metrics["rate_limit_rejections_total"].inc()

    def record_auth_failure(self, reason: str):
        self._metrics["auth_failures_total"].labels(reason=reason).inc()

    def record_backend_error(self, operation: str):
        self._metrics["backend_errors_total"].labels(operation=operation).inc()

    def sample(self, metric_name: str, **labels) -> float:
        """Current value of a counter sample, 0.0 when never observed."""
        value = self.registry.get_sample_value(metric_name, labels or None)
        return value or 0.0

    def render(self) -> bytes:
        """Prometheus text exposition of this collector's registry."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
