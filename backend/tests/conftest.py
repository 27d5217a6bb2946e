"""Pytest configuration and fixtures."""
import inspect
import sys
from pathlib import Path

import pytest

# Ensure backend root is on path when running pytest from repo root or backend
backend = Path(__file__).resolve().parent.parent
if str(backend) not in sys.path:
    sys.path.insert(0, str(backend))


class FakeProvider:
    """DirectionsProvider double: records calls, delegates to handler (sync or async)."""

    def __init__(self, handler):
        self.calls = []
        self._handler = handler

    async def fetch_directions(self, origin, destination, mode="walking"):
        self.calls.append((origin, destination, mode))
        result = self._handler(origin, destination, mode)
        if inspect.isawaitable(result):
            result = await result
        return result


@pytest.fixture
def make_provider():
    return FakeProvider
