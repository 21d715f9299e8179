"""
Tests for the engine tracer decorator and input fingerprints.
"""

from datetime import date
from decimal import Decimal

from invoicing_engines.tracer import compute_input_fingerprint, traced_engine
from invoicing_kernel.domain.values import Money


class TestFingerprint:

    def test_deterministic(self):
        kwargs = {"as_of": date(2024, 1, 1), "remaining": Money.of("10", "INR")}
        first = compute_input_fingerprint(("as_of", "remaining"), kwargs)
        second = compute_input_fingerprint(("as_of", "remaining"), dict(kwargs))
        assert first == second
        assert len(first) == 16

    def test_decimal_normalized(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1.50")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("1.5")})
        assert a == b

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("x",), {"x": {"a": 1, "b": 2}})
        b = compute_input_fingerprint(("x",), {"x": {"b": 2, "a": 1}})
        assert a == b

    def test_different_inputs_differ(self):
        a = compute_input_fingerprint(("x",), {"x": 1})
        b = compute_input_fingerprint(("x",), {"x": 2})
        assert a != b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})


class TestTracedEngine:

    def test_returns_result_and_logs(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=4) == 8
        trace = [r for r in captured_logs() if r["message"] == "INVOICING_ENGINE_TRACE"][-1]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["trace_type"] == "INVOICING_ENGINE_TRACE"
        assert trace["input_fingerprint"]

    def test_no_fingerprint_fields(self, captured_logs):
        @traced_engine("bare", "1.0")
        def noop():
            return None

        noop()
        trace = [r for r in captured_logs() if r["message"] == "INVOICING_ENGINE_TRACE"][-1]
        assert trace["input_fingerprint"] == ""
