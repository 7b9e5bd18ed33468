"""Prometheus metrics for service operations and booking outcomes."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

REGISTRY = CollectorRegistry(auto_describe=True)

SERVICE_OPERATION_DURATION_SECONDS = Histogram(
    "service_operation_duration_seconds",
    "Duration of service layer operations",
    ["service", "operation"],
    registry=REGISTRY,
)

SERVICE_OPERATIONS_TOTAL = Counter(
    "service_operations_total",
    "Service layer operations by outcome",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

# Conflicts detected at commit time, split by which party blocked the booking.
BOOKING_CONFLICTS_TOTAL = Counter(
    "booking_conflicts_total",
    "Bookings rejected because of an overlapping active session",
    ["party"],
    registry=REGISTRY,
)

# Compare-and-swap losses on the per-tutor booking version.
BOOKING_RACE_LOSSES_TOTAL = Counter(
    "booking_race_losses_total",
    "Bookings rolled back because another booking committed first",
    registry=REGISTRY,
)

PAYMENT_TRANSITIONS_TOTAL = Counter(
    "payment_transitions_total",
    "Payment ledger transitions by resulting status and mode",
    ["status", "mode"],
    registry=REGISTRY,
)


def record_service_operation(
    service: str,
    operation: str,
    duration: float,
    status: str = "success",
) -> None:
    """Record one measured service call."""
    SERVICE_OPERATION_DURATION_SECONDS.labels(service=service, operation=operation).observe(duration)
    SERVICE_OPERATIONS_TOTAL.labels(service=service, operation=operation, status=status).inc()
