"""
Prometheus metrics for the booking engine.

Service operation timings come from the @measure_operation decorator; the
domain counters below are recorded directly by the services.
"""

from typing import Optional

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
    "bookingcore_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "bookingcore_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "bookingcore_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

bookings_total = Counter(
    "bookingcore_bookings_total",
    "Booking attempts by outcome",
    ["outcome"],  # created | insufficient_capacity | conflict_retry | closed
    registry=REGISTRY,
)

sessions_generated_total = Counter(
    "bookingcore_sessions_generated_total",
    "Sessions written by the generator",
    registry=REGISTRY,
)

capacity_released_total = Counter(
    "bookingcore_capacity_released_total",
    "Seats returned to sessions by cancellations",
    ["reason"],  # cancelled | payment_failed | expired
    registry=REGISTRY,
)

generation_lock_total = Counter(
    "bookingcore_generation_lock_total",
    "Generation lock operations",
    ["action", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers do not touch metric objects directly."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking(outcome: str) -> None:
        bookings_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_sessions_generated(count: int) -> None:
        if count > 0:
            sessions_generated_total.inc(count)

    @staticmethod
    def record_capacity_released(reason: str, seats: int) -> None:
        capacity_released_total.labels(reason=reason).inc(seats)

    @staticmethod
    def record_generation_lock(action: str, status: str) -> None:
        generation_lock_total.labels(action=action, status=status).inc()

    @staticmethod
    def export() -> tuple[bytes, str]:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
