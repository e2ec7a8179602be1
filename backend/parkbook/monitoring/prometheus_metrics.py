"""
Prometheus metrics module for ParkBook.

Service timings come from ``BaseService.measure_operation``; allocation and
webhook counters are recorded by the booking and payment services.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "parkbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "parkbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "parkbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

spot_allocations_total = Counter(
    "parkbook_spot_allocations_total",
    "Spot allocation attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

allocation_lock_retries_total = Counter(
    "parkbook_allocation_lock_retries_total",
    "Check-and-reserve attempts retried after a lock or serialization failure",
    registry=REGISTRY,
)

payment_webhook_events_total = Counter(
    "parkbook_payment_webhook_events_total",
    "Payment provider webhook events by kind and result",
    ["event", "result"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_spot_allocation(outcome: str) -> None:
        """outcome: 'allocated', 'unavailable' or 'conflict'."""
        spot_allocations_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_allocation_retry() -> None:
        allocation_lock_retries_total.inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_webhook_event(event: str, result: str) -> None:
        payment_webhook_events_total.labels(event=event or "unknown", result=result).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts

        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = generate_latest(REGISTRY)
            PrometheusMetrics._cache_ts = monotonic()
            return cast(bytes, PrometheusMetrics._cache_payload)

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        PrometheusMetrics._cache_payload = None
        PrometheusMetrics._cache_ts = None


prometheus_metrics = PrometheusMetrics()
