"""Threshold classification of readings against fixed clinical bands."""

from pydantic import BaseModel, ConfigDict

from incubator.domain.models import Channel, ChannelStatus, Direction, Reading


class ClinicalBand(BaseModel):
    """Inclusive normal band; a missing side means no abnormal label there."""

    model_config = ConfigDict(frozen=True)

    lower: float | None = None
    upper: float | None = None
    alerting: bool = True

    def direction_of(self, value: float) -> Direction | None:
        if self.lower is not None and value < self.lower:
            return Direction.LOW
        if self.upper is not None and value > self.upper:
            return Direction.HIGH
        return None


CLINICAL_BANDS: dict[Channel, ClinicalBand] = {
    Channel.HEART_RATE: ClinicalBand(lower=130.0, upper=170.0),
    Channel.TEMPERATURE: ClinicalBand(lower=36.2, upper=37.5),
    Channel.OXYGEN: ClinicalBand(lower=95.0),
    # Humidity is shown against its target band but never alerts
    Channel.HUMIDITY: ClinicalBand(lower=50.0, upper=70.0, alerting=False),
}


class ThresholdClassifier:
    """Maps a reading to a status per channel. Stateless."""

    def __init__(self, bands: dict[Channel, ClinicalBand] | None = None) -> None:
        self.bands = bands or CLINICAL_BANDS

    def classify_value(self, channel: Channel, value: float) -> ChannelStatus:
        return ChannelStatus(
            channel=channel, value=value, direction=self.bands[channel].direction_of(value)
        )

    def classify(self, reading: Reading) -> dict[Channel, ChannelStatus]:
        return {
            channel: self.classify_value(channel, reading.value_of(channel))
            for channel in self.bands
        }

    def alerting(self, statuses: dict[Channel, ChannelStatus]) -> list[ChannelStatus]:
        """Statuses for the channels that feed the alert engine."""
        return [status for channel, status in statuses.items() if self.bands[channel].alerting]
