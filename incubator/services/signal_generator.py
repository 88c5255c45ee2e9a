"""
Bounded random-walk generation of simulated incubator sensor readings.

Each channel moves by a uniform random step from its previous value and is
then clamped to its physical range, so the generator can never produce an
implausible reading. The random source is injected so a seeded or scripted
source gives reproducible sequences.
"""

import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from incubator.config import SignalConfig
from incubator.domain.models import (
    GRAVITY,
    PHYSICAL_RANGES,
    Channel,
    Orientation,
    Reading,
)


class RandomSource(Protocol):
    """
    Anything that can draw a uniform float, e.g. ``random.Random``.

    Why Protocol: tests substitute a scripted source without subclassing.
    """

    def uniform(self, a: float, b: float) -> float: ...

    def random(self) -> float: ...


def seeded_random(seed: int | None) -> random.Random:
    """Create an isolated random source; ``None`` seeds from the OS."""
    return random.Random(seed)


class SignalGenerator:
    """
    Produces successive readings from the previous one.

    Draw order per tick is heart rate, temperature, humidity, oxygen, then
    orientation x, y, z. Scripted random sources rely on this order.
    """

    def __init__(
        self,
        config: SignalConfig | None = None,
        rng: RandomSource | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or SignalConfig()
        self.rng: RandomSource = rng or seeded_random(None)
        self._now = now or (lambda: datetime.now(UTC))

    def initial_reading(self) -> Reading:
        """The reading a fresh monitor starts from."""
        return Reading(
            timestamp=self._now(),
            heart_rate=self.config.initial_heart_rate,
            temperature=self.config.initial_temperature,
            humidity=self.config.initial_humidity,
            oxygen_level=self.config.initial_oxygen_level,
            orientation=self.config.initial_orientation,
        ).clamped()

    def _step(self, channel: Channel, previous: float, magnitude: float) -> float:
        bounds = PHYSICAL_RANGES[channel]
        return bounds.clamp(bounds.clamp(previous) + self.rng.uniform(-magnitude, magnitude))

    def tick(self, prev: Reading) -> Reading:
        """Advance every channel by one bounded random step."""
        cfg = self.config
        heart_rate = self._step(Channel.HEART_RATE, prev.heart_rate, cfg.heart_rate_step)
        temperature = self._step(Channel.TEMPERATURE, prev.temperature, cfg.temperature_step)
        humidity = self._step(Channel.HUMIDITY, prev.humidity, cfg.humidity_step)
        oxygen = self._step(Channel.OXYGEN, prev.oxygen_level, cfg.oxygen_step)

        # Orientation jitters around rest rather than drifting
        orientation = Orientation(
            x=self.rng.uniform(-cfg.orientation_step, cfg.orientation_step),
            y=self.rng.uniform(-cfg.orientation_step, cfg.orientation_step),
            z=GRAVITY + self.rng.uniform(-cfg.gravity_jitter, cfg.gravity_jitter),
        )

        return Reading(
            timestamp=self._now(),
            heart_rate=heart_rate,
            temperature=temperature,
            humidity=humidity,
            oxygen_level=oxygen,
            orientation=orientation,
        )
