"""Per-simulation traces and aggregate metrics."""

from __future__ import annotations

import re
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class SimulationTrace:
    trace_id: str
    timestamp_utc: str
    persona: str
    provider: str
    model: str
    document_location: str
    strategy: str | None
    raw_chars: int
    payload_chars: int
    reduced: bool
    input_tokens: int
    output_tokens: int
    latency_ms: float
    failed_stage: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None


class TraceStore:
    """In-memory trace storage for API-level observability.

    Simulations may run concurrently (one per web request), so writes are
    serialized with a lock.
    """

    def __init__(self, *, max_records: int = 1000) -> None:
        self._records: dict[str, SimulationTrace] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        persona: str,
        provider: str,
        model: str,
        document_location: str,
        strategy: str | None,
        raw_chars: int,
        payload_chars: int,
        reduced: bool,
        prompt_text: str,
        response: str,
        latency_ms: float,
        failed_stage: str | None = None,
        error: str | None = None,
    ) -> SimulationTrace:
        record = SimulationTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            persona=persona,
            provider=provider,
            model=model,
            document_location=document_location,
            strategy=strategy,
            raw_chars=raw_chars,
            payload_chars=payload_chars,
            reduced=reduced,
            input_tokens=estimate_token_count(prompt_text),
            output_tokens=estimate_token_count(response),
            latency_ms=latency_ms,
            failed_stage=failed_stage,
            error=error,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                self._records.pop(next(iter(self._records)))
        return record

    def get(self, trace_id: str) -> SimulationTrace:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[SimulationTrace]:
        with self._lock:
            return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int | dict[str, int]]:
        """Aggregate core observability metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "failed_requests": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "reduced_requests": 0,
                "total_input_tokens": 0,
                "total_output_tokens": 0,
                "strategies": {},
                "failures_by_stage": {},
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        strategies: dict[str, int] = {}
        failures: dict[str, int] = {}
        for record in records:
            if record.strategy:
                strategies[record.strategy] = strategies.get(record.strategy, 0) + 1
            if record.failed_stage:
                failures[record.failed_stage] = failures.get(record.failed_stage, 0) + 1

        return {
            "total_requests": total,
            "failed_requests": sum(failures.values()),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "reduced_requests": sum(1 for record in records if record.reduced),
            "total_input_tokens": sum(record.input_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
            "strategies": strategies,
            "failures_by_stage": failures,
        }


class Timer:
    """Simple context timer used by the simulator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    """Rough word/punctuation count, not a tokenizer-accurate figure."""
    return len(_TOKEN_PATTERN.findall(text))
