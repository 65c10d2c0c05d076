# tests/unit/pipeline/test_diagnostics.py
"""Unit tests for the Diagnostics channel."""

import pytest

from llm_debugger.contracts.enums import DiagnosticKind
from llm_debugger.pipeline.diagnostics import DiagnosticRecord, Diagnostics


class TestReport:
    def test_report_stores_record_with_context(self) -> None:
        diagnostics = Diagnostics()

        record = diagnostics.report(DiagnosticKind.CAPACITY_VIOLATION, "Too big", size_bytes=80)

        assert diagnostics.records == (record,)
        assert record.kind is DiagnosticKind.CAPACITY_VIOLATION
        assert record.context == {"size_bytes": 80}
        assert record.timestamp.endswith("Z")

    def test_counts_per_kind(self) -> None:
        diagnostics = Diagnostics()
        diagnostics.report(DiagnosticKind.TRANSPORT_FAILURE, "a")
        diagnostics.report(DiagnosticKind.TRANSPORT_FAILURE, "b")
        diagnostics.report(DiagnosticKind.PRODUCER_FAILURE, "c")

        assert diagnostics.count(DiagnosticKind.TRANSPORT_FAILURE) == 2
        assert diagnostics.counts["producer_failure"] == 1
        assert diagnostics.counts["capacity_violation"] == 0
        assert diagnostics.total == 3

    def test_records_bounded_but_counts_are_not(self) -> None:
        diagnostics = Diagnostics(max_records=2)
        for i in range(5):
            diagnostics.report(DiagnosticKind.SERIALIZATION_FAILURE, f"failure {i}")

        assert [r.message for r in diagnostics.records] == ["failure 3", "failure 4"]
        assert diagnostics.count(DiagnosticKind.SERIALIZATION_FAILURE) == 5

    def test_clear_resets_everything(self) -> None:
        diagnostics = Diagnostics()
        diagnostics.report(DiagnosticKind.CONFIGURATION_FAILURE, "bad")

        diagnostics.clear()

        assert diagnostics.records == ()
        assert diagnostics.total == 0

    def test_max_records_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="max_records"):
            Diagnostics(max_records=0)


class TestListeners:
    def test_listener_receives_records(self) -> None:
        diagnostics = Diagnostics()
        seen: list[DiagnosticRecord] = []
        diagnostics.add_listener(seen.append)

        diagnostics.report(DiagnosticKind.PRODUCER_FAILURE, "x")

        assert len(seen) == 1
        assert seen[0].kind is DiagnosticKind.PRODUCER_FAILURE

    def test_failing_listener_does_not_break_report(self) -> None:
        diagnostics = Diagnostics()
        seen: list[DiagnosticRecord] = []

        def broken(record: DiagnosticRecord) -> None:
            raise RuntimeError("listener bug")

        diagnostics.add_listener(broken)
        diagnostics.add_listener(seen.append)

        diagnostics.report(DiagnosticKind.TRANSPORT_FAILURE, "x")

        assert len(seen) == 1
        assert diagnostics.count(DiagnosticKind.TRANSPORT_FAILURE) == 1
