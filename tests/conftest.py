"""Shared pytest fixtures for chatsy tests."""
import random
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from helpers import FakeClock, FakeMonotonic, FakeSleep, ManualScheduler, whatsapp_page  # noqa: E402

from chatsy.infra.storage import MemoryStore  # noqa: E402
from chatsy.session import Session  # noqa: E402


@pytest.fixture
def session_factory():
    """Build Sessions wired to fake clocks and an in-memory store.

    Keyword arguments override the page or any Session collaborator.
    """

    def _make(page=None, **overrides):
        monotonic = overrides.pop("monotonic_clock", FakeMonotonic())
        kwargs = {
            "store": MemoryStore(),
            "scheduler": ManualScheduler(),
            "clock": FakeClock(),
            "monotonic_clock": monotonic,
            "sleep": FakeSleep(monotonic),
            "rng": random.Random(5),
            "environ": {},
        }
        kwargs.update(overrides)
        return Session(page or whatsapp_page(contact="Ana"), **kwargs)

    return _make

