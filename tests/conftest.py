# tests/conftest.py
"""Shared test fixtures and Hypothesis configuration.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Session fixtures build sessions with deterministic collaborators: a
RecordingTransport instead of HTTP, and ManualTimer instances (collected
by a ManualTimerFactory) instead of a background timer thread.
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from llm_debugger.pipeline.diagnostics import Diagnostics
from llm_debugger.pipeline.lifecycle import PageLifecycle
from llm_debugger.pipeline.session import DebuggerSession
from tests.fixtures.debugger import ManualTimerFactory, RecordingSniffer, RecordingTransport

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Timing varies on shared runners
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def page() -> PageLifecycle:
    return PageLifecycle()


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics()


@pytest.fixture
def recording_sniffer() -> RecordingSniffer:
    return RecordingSniffer("recorder")


@pytest.fixture
def make_session(
    transport: RecordingTransport,
    timers: ManualTimerFactory,
    page: PageLifecycle,
    diagnostics: Diagnostics,
    recording_sniffer: RecordingSniffer,
) -> Iterator[object]:
    """Factory for sessions wired to the recording doubles.

    Sessions created through it are stopped at teardown.
    """
    created: list[DebuggerSession] = []

    def _make(settings: object = None, **overrides: object) -> DebuggerSession:
        kwargs: dict[str, object] = {
            "sniffers": [recording_sniffer],
            "transport": transport,
            "page": page,
            "timer_factory": timers,
            "diagnostics": diagnostics,
        }
        kwargs.update(overrides)
        session = DebuggerSession(settings, **kwargs)  # type: ignore[arg-type]
        created.append(session)
        return session

    yield _make

    for session in created:
        session.stop()
