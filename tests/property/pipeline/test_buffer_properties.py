# tests/property/pipeline/test_buffer_properties.py
"""Property-based tests for BoundedBuffer and session delivery.

These tests verify:
1. Order: everything delivered (flushes + final drain) is the admitted
   entries in admission order
2. Accounting: every entry is either delivered or rejected, never both
3. Capacity: the running total never exceeds capacity and always equals
   the sum of buffered sizes
4. Session: with arbitrary interleaved flush triggers, each submitted entry
   reaches the transport exactly once
"""

from __future__ import annotations

import json

from hypothesis import given
from hypothesis import strategies as st

from llm_debugger.contracts.enums import FlushTrigger
from llm_debugger.pipeline.buffer import BoundedBuffer
from llm_debugger.pipeline.diagnostics import Diagnostics
from llm_debugger.pipeline.lifecycle import PageLifecycle
from llm_debugger.pipeline.serialization import byte_length
from llm_debugger.pipeline.session import DebuggerSession
from tests.fixtures.debugger import ManualTimerFactory, RecordingTransport, console_entry

texts = st.text(alphabet=st.characters(codec="utf-8", exclude_categories=("Cs",)), min_size=1, max_size=40)


def _text_buffer(capacity: int, flushed: list[list[str]], diagnostics: Diagnostics) -> BoundedBuffer:
    return BoundedBuffer(
        capacity,
        on_overflow=flushed.append,
        serializer=lambda text: text,  # type: ignore[arg-type, return-value]
        diagnostics=diagnostics,
    )


@given(capacity=st.integers(min_value=1, max_value=120), items=st.lists(texts, max_size=60))
def test_delivered_entries_preserve_admission_order(capacity: int, items: list[str]) -> None:
    flushed: list[list[str]] = []
    buffer = _text_buffer(capacity, flushed, Diagnostics())

    admitted = [item for item in items if buffer.admit(item)]  # type: ignore[arg-type]
    flushed.append(buffer.drain())

    delivered = [item for batch in flushed for item in batch]
    assert delivered == admitted


@given(capacity=st.integers(min_value=1, max_value=120), items=st.lists(texts, max_size=60))
def test_every_entry_delivered_or_rejected(capacity: int, items: list[str]) -> None:
    flushed: list[list[str]] = []
    diagnostics = Diagnostics()
    buffer = _text_buffer(capacity, flushed, diagnostics)

    for item in items:
        buffer.admit(item)  # type: ignore[arg-type]
    flushed.append(buffer.drain())

    delivered = sum(len(batch) for batch in flushed)
    expected_rejections = sum(1 for item in items if byte_length(item) > capacity)
    assert buffer.rejected_count == expected_rejections
    assert delivered + buffer.rejected_count == len(items)
    assert diagnostics.total == expected_rejections


@given(capacity=st.integers(min_value=1, max_value=120), items=st.lists(texts, max_size=60))
def test_total_never_exceeds_capacity(capacity: int, items: list[str]) -> None:
    flushed: list[list[str]] = []
    buffer = _text_buffer(capacity, flushed, Diagnostics())

    for item in items:
        buffer.admit(item)  # type: ignore[arg-type]
        assert buffer.total_bytes <= capacity
        assert buffer.total_bytes == sum(byte_length(entry) for entry in buffer.entries)

    for batch in flushed:
        assert batch
        assert sum(byte_length(entry) for entry in batch) <= capacity


@given(
    capacity=st.integers(min_value=200, max_value=2000),
    actions=st.lists(
        st.one_of(
            st.tuples(st.just("submit"), texts),
            st.tuples(st.just("flush"), st.sampled_from(list(FlushTrigger))),
        ),
        max_size=80,
    ),
)
def test_session_delivers_each_submission_once(capacity: int, actions: list[tuple[str, object]]) -> None:
    transport = RecordingTransport()
    session = DebuggerSession(
        {"buffer_capacity_bytes": capacity, "flush_interval_ms": 0},
        transport=transport,
        page=PageLifecycle(),
        timer_factory=ManualTimerFactory(),
    )
    session.start()

    submitted: list[str] = []
    for index, (kind, value) in enumerate(actions):
        if kind == "submit":
            message = f"{index}:{value}"
            submitted.append(message)
            session.submit(console_entry(message))
        else:
            session.flush(value)  # type: ignore[arg-type]
    session.stop()

    delivered = [json.loads(item)["message"] for batch in transport.batches for item in batch]
    rejected = session.health_metrics["entries_rejected"]
    assert len(delivered) + rejected == len(submitted)
    delivered_set = set(delivered)
    assert [m for m in submitted if m in delivered_set] == delivered
    assert all(batch for batch in transport.batches)
