"""
Domain models for incubator vital-sign monitoring.

These models represent the core clinical concepts and are framework-agnostic.
They use Pydantic for validation; every model is frozen so consumers can be
handed the same instance the ledger holds without risk of mutation.
"""

import math
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    """Sensor channels carried by a reading."""

    HEART_RATE = "heart_rate"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    OXYGEN = "oxygen"


class Direction(str, Enum):
    """Which side of the normal band an abnormal value sits on."""

    LOW = "low"
    HIGH = "high"


class AlertKind(str, Enum):
    EMERGENCY = "emergency"
    WARNING = "warning"
    INFO = "info"


class AlertPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PhysicalRange(BaseModel):
    """Inclusive physically plausible range for a channel."""

    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float

    def clamp(self, value: float) -> float:
        # NaN fails both comparisons; fall back to the middle of the range
        if value != value:
            return (self.lower + self.upper) / 2
        return max(self.lower, min(self.upper, value))


# Values outside these ranges cannot come out of the generator
PHYSICAL_RANGES: dict[Channel, PhysicalRange] = {
    Channel.HEART_RATE: PhysicalRange(lower=120.0, upper=180.0),
    Channel.TEMPERATURE: PhysicalRange(lower=35.5, upper=38.5),
    Channel.HUMIDITY: PhysicalRange(lower=40.0, upper=80.0),
    Channel.OXYGEN: PhysicalRange(lower=92.0, upper=100.0),
}

GRAVITY = 9.8


class Orientation(BaseModel):
    """Gravity-relative orientation vector from the incubator gyroscope."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = GRAVITY

    @property
    def tilt_degrees(self) -> float:
        """Angle between the measured gravity vector and the vertical."""
        return math.degrees(math.atan2(math.hypot(self.x, self.y), self.z))


class Reading(BaseModel):
    """A timestamped vector of channel values."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    heart_rate: float = Field(alias="heartRate", description="beats per minute")
    temperature: float = Field(description="body temperature in degrees Celsius")
    humidity: float = Field(description="relative humidity in percent")
    oxygen_level: float = Field(alias="oxygenLevel", description="oxygen saturation in percent")
    orientation: Orientation = Field(default_factory=Orientation)

    def value_of(self, channel: Channel) -> float:
        if channel is Channel.HEART_RATE:
            return self.heart_rate
        if channel is Channel.TEMPERATURE:
            return self.temperature
        if channel is Channel.HUMIDITY:
            return self.humidity
        return self.oxygen_level

    def clamped(self) -> "Reading":
        """Return a copy with every channel clamped to its physical range."""
        return self.model_copy(
            update={
                "heart_rate": PHYSICAL_RANGES[Channel.HEART_RATE].clamp(self.heart_rate),
                "temperature": PHYSICAL_RANGES[Channel.TEMPERATURE].clamp(self.temperature),
                "humidity": PHYSICAL_RANGES[Channel.HUMIDITY].clamp(self.humidity),
                "oxygen_level": PHYSICAL_RANGES[Channel.OXYGEN].clamp(self.oxygen_level),
            }
        )


class ChannelStatus(BaseModel):
    """Classification of one channel value: normal, or abnormal low/high."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    value: float
    direction: Direction | None = None

    @property
    def is_normal(self) -> bool:
        return self.direction is None

    @property
    def source_key(self) -> str | None:
        """Dedup key of the abnormal condition, e.g. ``heart_rate_high``."""
        if self.direction is None:
            return None
        return f"{self.channel.value}_{self.direction.value}"

    @property
    def label(self) -> str:
        return "Normal" if self.direction is None else self.direction.value.capitalize()


class Alert(BaseModel):
    """An entry in the alert ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: AlertKind
    title: str
    description: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    priority: AlertPriority
    acknowledged: bool = False
    source_key: str = Field(description="Stable key of the condition that raised the alert")


class EmergencyContact(BaseModel):
    """Static contact record consumed by the notification dispatcher."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    phone: str
    email: str


class AudioEvent(BaseModel):
    """A crying detection from the audio monitor."""

    model_config = ConfigDict(frozen=True)

    intensity: float = Field(ge=0.0, le=100.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
