from __future__ import annotations

import asyncio
import copy
import threading
from datetime import date
from typing import Any, Optional

import pytest

from attendance_ledger.core.enums import EnrollmentStatus, MirrorAction
from attendance_ledger.roster.model import BimesterConfig, ClassGroup, Student, Subject
from attendance_ledger.sync.dispatcher import BackgroundLoop, LoopDispatcher


class InMemoryCache:
    def __init__(self, blob: Optional[dict[str, Any]] = None):
        self.blob = copy.deepcopy(blob)
        self.writes = 0

    def read(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self.blob)

    def write(self, blob: dict[str, Any]) -> None:
        self.blob = copy.deepcopy(blob)
        self.writes += 1


class FakeRemote:
    """Remote store double; ``release`` lets a test hold the fetch in flight."""

    def __init__(self, payload: Any = None, *, hold: bool = False, fail_writes: bool = False):
        self.payload = payload
        self.release = threading.Event()
        if not hold:
            self.release.set()
        self.fail_writes = fail_writes
        self.fetches = 0
        self.writes: list[tuple[MirrorAction, Any]] = []

    async def fetch_all(self):
        self.fetches += 1
        while not self.release.is_set():
            await asyncio.sleep(0.01)
        return copy.deepcopy(self.payload)

    async def mirror(self, action: MirrorAction, payload: Any) -> None:
        self.writes.append((action, payload))
        if self.fail_writes:
            raise ConnectionError("remote down")


@pytest.fixture
def io_loop():
    loop = BackgroundLoop().start()
    yield loop
    loop.stop()


@pytest.fixture
def dispatcher(io_loop):
    return LoopDispatcher(io_loop.loop)


@pytest.fixture
def run_on_loop(io_loop):
    """Run a coroutine on the background loop and wait for its result."""

    def _run(coro, timeout: float = 5.0):
        return asyncio.run_coroutine_threadsafe(coro, io_loop.loop).result(timeout)

    return _run


@pytest.fixture
def bimesters():
    return [
        BimesterConfig(1, "B1", date(2024, 2, 1), date(2024, 4, 30)),
        BimesterConfig(2, "B2", date(2024, 5, 1), date(2024, 7, 15)),
    ]


@pytest.fixture
def roster_data():
    classes = [ClassGroup("c1", "6º Ano A"), ClassGroup("c2", "7º Ano B")]
    students = [
        Student("s1", "Ana Souza", EnrollmentStatus.ACTIVE, "c1"),
        Student("s2", "Bruno Lima", EnrollmentStatus.ACTIVE, "c1"),
        Student("s3", "Carla Dias", EnrollmentStatus.DROPOUT, "c2"),
        Student("s4", "Diego Reis", EnrollmentStatus.TRANSFERRED, "c2"),
    ]
    subjects = [Subject("math", "Matemática"), Subject("hist", "História")]
    return classes, students, subjects
