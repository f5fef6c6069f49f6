"""
Tests for the engine tracer (consolidation_engines/tracer.py).

Covers:
- Deterministic input fingerprints
- Canonicalization of domain values
- CONSOLIDATION_ENGINE_TRACE log record shape
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from consolidation_engines.tracer import _canonicalize, compute_input_fingerprint, traced_engine
from consolidation_kernel.domain.values import MonetaryAmount


@dataclass(frozen=True)
class _Payload:
    name: str
    amount: Decimal


class _Engine:
    @traced_engine("sample", "2.1", fingerprint_fields=("payload", "mode"))
    def run(self, payload, mode="fast"):
        return payload.amount * 2


class TestCanonicalize:
    """Tests for stable value representations."""

    def test_decimal_ignores_scale(self):
        assert _canonicalize(Decimal("1.500")) == _canonicalize(Decimal("1.5"))
        assert _canonicalize(Decimal("0.000")) == "0"

    def test_dict_keys_sorted(self):
        assert _canonicalize({"b": 1, "a": 2}) == "{a:2,b:1}"

    def test_none_and_bool(self):
        assert _canonicalize(None) == "null"
        assert _canonicalize(True) == "true"

    def test_date(self):
        assert _canonicalize(date(2025, 12, 31)) == "2025-12-31"

    def test_dataclass_includes_type_name(self):
        assert _canonicalize(_Payload("x", Decimal("1"))).startswith("_Payload{")

    def test_monetary_amount_scale_insensitive(self):
        assert _canonicalize(MonetaryAmount.of("10", "USD")) == _canonicalize(
            MonetaryAmount.of(Decimal("10.000000"), "USD")
        )


class TestFingerprint:
    """Tests for compute_input_fingerprint."""

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("a",), {"a": 1})
        assert len(fp) == 16
        int(fp, 16)

    def test_deterministic(self):
        args = {"a": Decimal("1.10"), "b": "x"}
        assert compute_input_fingerprint(("a", "b"), args) == compute_input_fingerprint(("a", "b"), args)

    def test_sensitive_to_values(self):
        assert compute_input_fingerprint(("a",), {"a": 1}) != compute_input_fingerprint(("a",), {"a": 2})

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(("a",), {"a": None})


class TestTracedEngine:
    """Tests for the traced_engine decorator."""

    def test_returns_result(self):
        assert _Engine().run(_Payload("x", Decimal("2"))) == Decimal("4")

    def test_emits_trace_record(self, captured_logs):
        _Engine().run(_Payload("x", Decimal("2")), mode="slow")

        traces = [r for r in captured_logs() if r["message"] == "CONSOLIDATION_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["logger"] == "consolidation.engines.tracer"
        assert trace["trace_type"] == "CONSOLIDATION_ENGINE_TRACE"
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["function"] == "_Engine.run"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0

    def test_same_input_same_fingerprint(self, captured_logs):
        engine = _Engine()
        engine.run(_Payload("x", Decimal("2")))
        engine.run(payload=_Payload("x", Decimal("2.00")))
        first, second = [
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "CONSOLIDATION_ENGINE_TRACE"
        ]
        assert first == second

    def test_preserves_metadata(self):
        assert _Engine.run.__name__ == "run"
