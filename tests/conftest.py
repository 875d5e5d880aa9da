"""Shared fixtures for GeoLock tests."""

import pytest

from geolock.core.models import Coordinate, Severity, WorkflowKind
from geolock.core.sinks import StatusSink
from geolock.security.kdf import KdfParams


class RecordingStatusSink(StatusSink):
    """Keeps every report so tests can assert on them."""

    def __init__(self):
        self.reports = []

    def report(self, severity: Severity, message: str, workflow: WorkflowKind) -> None:
        self.reports.append((severity, message, workflow))

    @property
    def last(self):
        return self.reports[-1] if self.reports else None


@pytest.fixture
def fast_params():
    """Argon2 costs low enough for unit tests."""
    return KdfParams(time_cost=1, memory_cost=64, parallelism=1)


@pytest.fixture
def san_francisco():
    return Coordinate(lat=37.7749, lng=-122.4194)


@pytest.fixture
def status_sink():
    return RecordingStatusSink()
