"""
Audio anomaly (crying) monitoring.

The microphone is emulated: each sample carries an ambient level and, now
and then, a crying intensity. Real capture and signal processing are out of
scope; a hardware-backed ``Microphone`` only has to return the same sample.

The "crying detected" flag shown on the dashboard has a fixed display window
that starts at the first detection and is not extended by later ones. That
window is cosmetic; it has no effect on the alert ledger, which dedups
crying through its own open/quiescent state.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from incubator.domain.models import AudioEvent
from incubator.services.signal_generator import RandomSource

logger = structlog.get_logger(__name__)

AMBIENT_LEVEL_CEILING = 20.0


class AudioSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    ambient_level: float = Field(ge=0.0, le=100.0)
    crying_intensity: float | None = Field(default=None, ge=0.0, le=100.0)


class Microphone(Protocol):
    def sample(self) -> AudioSample: ...


class SimulatedMicrophone:
    """Ambient noise in [0, 20] with an occasional cry of random intensity."""

    def __init__(self, rng: RandomSource, crying_probability: float = 0.1) -> None:
        self.rng = rng
        self.crying_probability = crying_probability

    def sample(self) -> AudioSample:
        ambient = self.rng.random() * AMBIENT_LEVEL_CEILING
        intensity = None
        if self.rng.random() < self.crying_probability:
            intensity = self.rng.random() * 100
        return AudioSample(ambient_level=ambient, crying_intensity=intensity)


class AudioAnomalyMonitor:
    """Turns microphone samples into crying events for the alert engine."""

    def __init__(
        self,
        microphone: Microphone,
        on_crying: Callable[[float], Any],
        threshold: float = 70.0,
        display_ttl_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.microphone = microphone
        self.on_crying = on_crying
        self.threshold = threshold
        self.display_ttl_seconds = display_ttl_seconds
        self._clock = clock
        self._now = now or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="audio_monitor")

        self._active = True
        self._audio_level = 0.0
        self._event: AudioEvent | None = None
        self._visible_until = 0.0

    @property
    def microphone_active(self) -> bool:
        return self._active

    def enable(self) -> None:
        self._active = True
        self.logger.info("microphone_enabled")

    def disable(self) -> None:
        """Turn the microphone off; the level drops to zero and the badge clears."""
        self._active = False
        self._audio_level = 0.0
        self._event = None
        self._visible_until = 0.0
        self.logger.info("microphone_disabled")

    def toggle(self) -> bool:
        if self._active:
            self.disable()
        else:
            self.enable()
        return self._active

    @property
    def audio_level(self) -> float:
        return self._audio_level

    @property
    def current_event(self) -> AudioEvent | None:
        """The crying event to display, or None once its window has passed."""
        if self._event is not None and self._clock() >= self._visible_until:
            self._event = None
        return self._event

    @property
    def crying_detected(self) -> bool:
        return self.current_event is not None

    def sample_once(self) -> AudioEvent | None:
        """Take one microphone sample. Returns the crying event it produced, if any."""
        if not self._active:
            return None

        sample = self.microphone.sample()
        self._audio_level = sample.ambient_level

        intensity = sample.crying_intensity
        if intensity is None:
            return None
        if intensity <= self.threshold:
            self.logger.debug("crying_below_threshold", intensity=round(intensity, 1))
            return None

        event = AudioEvent(intensity=intensity, timestamp=self._now())
        if self.current_event is None:
            self._visible_until = self._clock() + self.display_ttl_seconds
        self._event = event

        self.logger.info("crying_detected", intensity=round(intensity, 1))
        self.on_crying(intensity)
        return event
