"""
pytest configuration and shared fixtures.

Test doubles here implement the package Protocols structurally, so no test
needs to patch module globals to get deterministic behaviour.
"""

import asyncio
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import pytest

from incubator.config import AppConfig, MonitoringConfig, SignalConfig
from incubator.domain.models import Alert, EmergencyContact
from incubator.domain.result import Result
from incubator.services.audio_monitor import AudioSample
from incubator.services.notifications import DispatchReceipt

# Draws per generator tick: heart rate, temperature, humidity, oxygen, x, y, z
DRAWS_PER_TICK = 7


class ScriptedRandom:
    """Random source that replays scripted values, then returns neutral ones."""

    def __init__(self, uniforms: Iterable[float] = (), randoms: Iterable[float] = ()) -> None:
        self.uniforms = deque(uniforms)
        self.randoms = deque(randoms)

    def uniform(self, a: float, b: float) -> float:
        return self.uniforms.popleft() if self.uniforms else 0.0

    def random(self) -> float:
        return self.randoms.popleft() if self.randoms else 0.99


def heart_rate_script(deltas: Iterable[float]) -> ScriptedRandom:
    """Scripted source moving only the heart rate, one delta per tick."""
    draws: list[float] = []
    for delta in deltas:
        draws.extend([delta] + [0.0] * (DRAWS_PER_TICK - 1))
    return ScriptedRandom(uniforms=draws)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class SteppingNow:
    """Wall clock that moves one second per call, for ordered timestamps."""

    def __init__(self) -> None:
        self.current = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class ScriptedMicrophone:
    """Microphone replaying crying intensities; ``None`` means no crying."""

    def __init__(self, intensities: Iterable[float | None], ambient: float = 5.0) -> None:
        self.intensities = deque(intensities)
        self.ambient = ambient

    def sample(self) -> AudioSample:
        intensity = self.intensities.popleft() if self.intensities else None
        return AudioSample(ambient_level=self.ambient, crying_intensity=intensity)


class RecordingDispatcher:
    """Dispatcher double recording each call."""

    def __init__(self) -> None:
        self.calls: list[tuple[Alert, list[EmergencyContact]]] = []

    async def dispatch(
        self, alert: Alert, contacts: list[EmergencyContact]
    ) -> Result[DispatchReceipt, Exception]:
        self.calls.append((alert, contacts))
        return Result.ok(DispatchReceipt(alert_id=alert.id))


class FailingDispatcher:
    """Dispatcher double that raises, like a broken transport."""

    def __init__(self) -> None:
        self.attempts = 0

    async def dispatch(
        self, alert: Alert, contacts: list[EmergencyContact]
    ) -> Result[DispatchReceipt, Exception]:
        self.attempts += 1
        raise ConnectionError("SMS gateway unreachable")


class BlockingDispatcher:
    """Dispatcher double that waits until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.finished = 0

    async def dispatch(
        self, alert: Alert, contacts: list[EmergencyContact]
    ) -> Result[DispatchReceipt, Exception]:
        await self.release.wait()
        self.finished += 1
        return Result.ok(DispatchReceipt(alert_id=alert.id))


@pytest.fixture
def contacts() -> list[EmergencyContact]:
    return [
        EmergencyContact(name="Nurse Station", phone="+1 (555) 987-6543", email="nurses@hospital.com"),
        EmergencyContact(name="Parents", phone="+1 (555) 456-7890", email="parents@email.com"),
    ]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_config() -> AppConfig:
    """Configuration with short intervals for running the real producers."""
    return AppConfig(
        monitoring=MonitoringConfig(
            vital_sampling_interval_seconds=0.01,
            audio_sampling_interval_seconds=0.01,
            random_seed=42,
        ),
        signal=SignalConfig(),
    )
