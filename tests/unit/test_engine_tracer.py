"""Tests for the engine invocation tracer."""

from decimal import Decimal
from uuid import UUID

from autoexport_engines.charges import ChargeLine, compute_invoice_totals
from autoexport_engines.tracer import compute_input_fingerprint, traced_engine


class TestFingerprint:
    def test_stable(self):
        a = compute_input_fingerprint(("x", "y"), {"x": Decimal("1.50"), "y": [1, 2]})
        b = compute_input_fingerprint(("x", "y"), {"y": [1, 2], "x": Decimal("1.50")})

        assert a == b
        assert len(a) == 16

    def test_differs_on_input(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("2")})

        assert a != b

    def test_missing_field_hashes_as_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )

    def test_uuid_values(self):
        u = UUID("12345678-1234-5678-1234-567812345678")
        assert compute_input_fingerprint(("ids",), {"ids": [u]}) == compute_input_fingerprint(
            ("ids",), {"ids": [str(u)]}
        )


class TestTracedEngine:
    def test_emits_trace_record(self, captured_logs):
        compute_invoice_totals(
            [ChargeLine(Decimal("100"), "Fee")], tax_enabled=True, tax_rate=Decimal("10")
        )

        traces = [r for r in captured_logs() if r["message"] == "AUTOEXPORT_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "invoice_totals"
        assert traces[-1]["engine_version"] == "1.0"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_preserves_function_metadata(self):
        @traced_engine("demo", "0.1")
        def demo(x):
            """Doc."""
            return x * 2

        assert demo(2) == 4
        assert demo.__name__ == "demo"
        assert demo.__doc__ == "Doc."

