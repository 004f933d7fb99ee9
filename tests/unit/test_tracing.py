import pytest

from impersonaid.obs.tracing import TraceStore, estimate_token_count


def _record(store: TraceStore, **overrides):
    fields = {
        "persona": "Ada",
        "provider": "openai",
        "model": "gpt-4o",
        "document_location": "https://docs.example.com",
        "strategy": "embedded-reference",
        "raw_chars": 100,
        "payload_chars": 100,
        "reduced": False,
        "prompt_text": "Explain the install step.",
        "response": "It is clear.",
        "latency_ms": 10.0,
    }
    fields.update(overrides)
    return store.create_record(**fields)


def test_trace_lookup_and_recent_order() -> None:
    store = TraceStore()
    first = _record(store)
    second = _record(store, persona="Bo")

    assert store.get(first.trace_id).persona == "Ada"
    assert [trace.trace_id for trace in store.list_recent(limit=1)] == [second.trace_id]
    with pytest.raises(KeyError):
        store.get("missing")


def test_store_evicts_oldest_records() -> None:
    store = TraceStore(max_records=2)
    oldest = _record(store)
    _record(store)
    _record(store)

    assert len(store.list_recent(limit=10)) == 2
    with pytest.raises(KeyError):
        store.get(oldest.trace_id)


def test_summary_counts_strategies_and_failures() -> None:
    store = TraceStore()
    _record(store, reduced=True, latency_ms=30.0)
    _record(store, strategy="direct-reference", latency_ms=10.0)
    failed = _record(store, strategy=None, response="", failed_stage="route", error="404")

    summary = store.summary()

    assert not failed.succeeded
    assert summary["total_requests"] == 3
    assert summary["failed_requests"] == 1
    assert summary["reduced_requests"] == 1
    assert summary["strategies"] == {"embedded-reference": 1, "direct-reference": 1}
    assert summary["failures_by_stage"] == {"route": 1}
    assert summary["avg_latency_ms"] == pytest.approx(50.0 / 3)


def test_empty_summary() -> None:
    assert TraceStore().summary()["total_requests"] == 0


def test_estimate_token_count() -> None:
    assert estimate_token_count("Hello, world!") == 4
