"""
Validation metrics.

Decision events are kept for a fixed retention window (24h by default) and
mirrored into Prometheus counters on a per-recorder registry.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram
from pydantic import BaseModel, Field, computed_field

from .models import Decision

logger = logging.getLogger(__name__)


class ValidationMetrics(BaseModel):
    """Snapshot of decisions made within the retention window."""

    total_submissions: int = 0
    approved: int = 0
    rejected: int = 0
    manual_reviews: int = 0
    fraud_detected: int = 0
    average_confidence: float = Field(default=0.0, description="Mean oracle confidence")

    @computed_field
    @property
    def manual_review_rate(self) -> float:
        return self.manual_reviews / max(self.total_submissions, 1)

    @computed_field
    @property
    def fraud_rate(self) -> float:
        return self.fraud_detected / max(self.total_submissions, 1)


class MetricsRecorder(Protocol):
    """Protocol for metrics dependency injection."""

    async def record(
        self,
        decision: Decision,
        fraud_detected: bool,
        confidence: float,
        at: datetime | None = None,
    ) -> None:
        """Record one decision."""
        ...

    async def snapshot(self, now: datetime | None = None) -> ValidationMetrics:
        """Aggregate the decisions still inside the retention window."""
        ...


@dataclass(frozen=True)
class _DecisionEvent:
    at: datetime
    decision: Decision
    fraud_detected: bool
    confidence: float


class InMemoryMetricsRecorder:
    """
    Process-local metrics recorder.

    Events older than the retention window are dropped on every read and
    write, so a snapshot always describes the trailing window only.
    """

    def __init__(
        self,
        retention_seconds: int = 86400,
        registry: CollectorRegistry | None = None,
    ):
        self.retention = timedelta(seconds=retention_seconds)
        self.registry = registry or CollectorRegistry()
        self._events: deque[_DecisionEvent] = deque()

        self.decisions_counter = Counter(
            "proof_validation_decisions_total",
            "Total number of validation decisions",
            ["decision"],
            registry=self.registry,
        )
        self.fraud_counter = Counter(
            "proof_validation_fraud_detected_total",
            "Total number of submissions rejected for fraud",
            registry=self.registry,
        )
        self.confidence_histogram = Histogram(
            "proof_validation_confidence",
            "Oracle confidence of validated submissions",
            buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.85, 0.9, 1.0],
            registry=self.registry,
        )

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.retention
        while self._events and self._events[0].at < cutoff:
            self._events.popleft()

    async def record(
        self,
        decision: Decision,
        fraud_detected: bool,
        confidence: float,
        at: datetime | None = None,
    ) -> None:
        at = at or datetime.now(timezone.utc)
        self._events.append(_DecisionEvent(at, decision, fraud_detected, confidence))
        # Keep events ordered when callers pass explicit timestamps
        if len(self._events) > 1 and self._events[-2].at > at:
            self._events = deque(sorted(self._events, key=lambda e: e.at))
        self._prune(max(at, self._events[-1].at))

        self.decisions_counter.labels(decision=decision.value).inc()
        if fraud_detected:
            self.fraud_counter.inc()
        self.confidence_histogram.observe(confidence)

        logger.debug(f"Recorded {decision.value} decision (fraud={fraud_detected})")

    async def snapshot(self, now: datetime | None = None) -> ValidationMetrics:
        now = now or datetime.now(timezone.utc)
        cutoff = now - self.retention
        events = [e for e in self._events if cutoff <= e.at <= now]
        if not events:
            return ValidationMetrics()

        return ValidationMetrics(
            total_submissions=len(events),
            approved=sum(1 for e in events if e.decision == Decision.APPROVED),
            rejected=sum(1 for e in events if e.decision == Decision.REJECTED),
            manual_reviews=sum(1 for e in events if e.decision == Decision.MANUAL_REVIEW),
            fraud_detected=sum(1 for e in events if e.fraud_detected),
            average_confidence=sum(e.confidence for e in events) / len(events),
        )
