"""Shared fakes for the Phrase Trainer tests.

``FakeLoop`` is a virtual clock implementing the small part of the
``asyncio`` loop API the scheduler and pollers use.  Time only moves when a
test calls :meth:`FakeLoop.advance`, which runs every due callback in
deadline order (registration order for equal deadlines).
"""

import heapq
import itertools
import sys
from pathlib import Path

import pytest

# Ensure the repository root is on ``sys.path`` so ``phrase_trainer`` can be
# imported regardless of where pytest is executed from.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


class FakeHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    def __init__(self, start=1000.0):
        self.now = start
        self._queue = []
        self._seq = itertools.count()

    def time(self):
        return self.now

    def call_at(self, when, callback, *args):
        handle = FakeHandle(when, callback, args)
        heapq.heappush(self._queue, (when, next(self._seq), handle))
        return handle

    def call_later(self, delay, callback, *args):
        return self.call_at(self.now + delay, callback, *args)

    def pending(self):
        return [h for _, _, h in self._queue if not h.cancelled]

    def advance(self, seconds):
        """Move the clock forward, running callbacks as they fall due."""

        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            self.now = max(self.now, when)
            if not handle.cancelled:
                handle.callback(*handle.args)
        self.now = target


class FakeBackend:
    """Audio backend recording every triggered note."""

    def __init__(self, ready=True):
        self._ready = ready
        self.notes = []
        self.loads = 0
        self.closed = False

    @property
    def ready(self):
        return self._ready

    async def load(self):
        self.loads += 1
        self._ready = True

    def trigger_note(self, pitch, duration, velocity=80):
        self.notes.append((pitch, duration, velocity))

    def close(self):
        self.closed = True


class FakeSurface:
    """Score surface recording load and render calls in order."""

    def __init__(self):
        self.calls = []

    async def load(self, document):
        self.calls.append(("load", document))

    def render(self):
        self.calls.append(("render", None))


@pytest.fixture()
def fake_loop():
    return FakeLoop()


@pytest.fixture()
def backend():
    return FakeBackend()
