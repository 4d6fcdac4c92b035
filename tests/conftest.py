import threading

import pytest

from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.infra.logging import reset_logging


@pytest.fixture
def small_elements() -> ElementTable:
    """A reduced table (H, C, O only) for injection tests."""
    return ElementTable([DEFAULT_ELEMENTS[s] for s in ("H", "C", "O")], version="test")


@pytest.fixture
def clean_logging():
    """Remove root handlers installed by setup_logging() after the test."""
    yield
    reset_logging()


class RecordingResolver:
    """Resolver double that returns canned text (or raises) and records calls."""

    def __init__(self, text=None, exc=None, block: threading.Event | None = None):
        self.text = text
        self.exc = exc
        self.block = block
        self.calls = []

    def __call__(self, formula, context):
        self.calls.append((formula, context))
        if self.block is not None:
            self.block.wait(5)
        if self.exc is not None:
            raise self.exc
        return self.text


@pytest.fixture
def recording_resolver():
    return RecordingResolver
