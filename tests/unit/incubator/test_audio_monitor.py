"""Tests for crying detection and its display window."""

import pytest
from conftest import FakeClock, ScriptedMicrophone, ScriptedRandom

from incubator.services.alert_engine import AlertEngine
from incubator.services.audio_monitor import AudioAnomalyMonitor, SimulatedMicrophone


def _monitor(
    intensities: list[float | None], clock: FakeClock, reports: list[float]
) -> AudioAnomalyMonitor:
    return AudioAnomalyMonitor(
        ScriptedMicrophone(intensities),
        on_crying=reports.append,
        threshold=70.0,
        display_ttl_seconds=3.0,
        clock=clock,
    )


class TestSimulatedMicrophone:
    def test_quiet_sample_has_no_crying(self) -> None:
        mic = SimulatedMicrophone(ScriptedRandom(randoms=[0.5, 0.5]), crying_probability=0.1)
        sample = mic.sample()

        assert sample.ambient_level == 10.0
        assert sample.crying_intensity is None

    def test_crying_sample_scales_intensity(self) -> None:
        mic = SimulatedMicrophone(ScriptedRandom(randoms=[0.25, 0.05, 0.75]), crying_probability=0.1)
        sample = mic.sample()

        assert sample.ambient_level == 5.0
        assert sample.crying_intensity == 75.0


class TestAudioAnomalyMonitor:
    def test_intensity_above_threshold_emits_event(self, fake_clock: FakeClock) -> None:
        reports: list[float] = []
        monitor = _monitor([85.0], fake_clock, reports)

        event = monitor.sample_once()

        assert event is not None
        assert event.intensity == 85.0
        assert reports == [85.0]
        assert monitor.crying_detected
        assert monitor.audio_level == 5.0

    @pytest.mark.parametrize("intensity", [None, 30.0, 70.0])
    def test_quiet_or_low_intensity_emits_nothing(
        self, fake_clock: FakeClock, intensity: float | None
    ) -> None:
        reports: list[float] = []
        monitor = _monitor([intensity], fake_clock, reports)

        assert monitor.sample_once() is None
        assert reports == []
        assert not monitor.crying_detected

    def test_detected_flag_clears_after_display_window(self, fake_clock: FakeClock) -> None:
        monitor = _monitor([85.0], fake_clock, [])
        monitor.sample_once()

        fake_clock.advance(2.5)
        assert monitor.crying_detected
        fake_clock.advance(0.5)
        assert not monitor.crying_detected
        assert monitor.current_event is None

    def test_new_cry_does_not_extend_display_window(self, fake_clock: FakeClock) -> None:
        reports: list[float] = []
        monitor = _monitor([85.0, 90.0], fake_clock, reports)

        monitor.sample_once()
        fake_clock.advance(1.0)
        monitor.sample_once()

        assert reports == [85.0, 90.0]
        assert monitor.current_event is not None
        assert monitor.current_event.intensity == 90.0
        fake_clock.advance(2.0)
        assert not monitor.crying_detected

    def test_cry_after_window_opens_a_new_window(self, fake_clock: FakeClock) -> None:
        monitor = _monitor([85.0, 90.0], fake_clock, [])
        monitor.sample_once()
        fake_clock.advance(5.0)
        monitor.sample_once()

        fake_clock.advance(2.0)
        assert monitor.crying_detected

    def test_disabled_microphone_samples_nothing(self, fake_clock: FakeClock) -> None:
        reports: list[float] = []
        monitor = _monitor([85.0, 90.0], fake_clock, reports)
        monitor.sample_once()

        monitor.disable()

        assert not monitor.microphone_active
        assert monitor.audio_level == 0.0
        assert not monitor.crying_detected
        assert monitor.sample_once() is None
        assert reports == [85.0]

    def test_toggle_flips_microphone(self, fake_clock: FakeClock) -> None:
        monitor = _monitor([], fake_clock, [])
        assert monitor.toggle() is False
        assert monitor.toggle() is True


class TestCryingCorrelation:
    def test_display_window_is_independent_of_alert_dedup(self, fake_clock: FakeClock) -> None:
        engine = AlertEngine()
        monitor = AudioAnomalyMonitor(
            ScriptedMicrophone([85.0, 92.0]),
            on_crying=engine.report_crying,
            clock=fake_clock,
        )

        monitor.sample_once()
        fake_clock.advance(10.0)
        assert not monitor.crying_detected
        monitor.sample_once()

        crying = [a for a in engine.snapshot() if a.source_key == "crying"]
        assert len(crying) == 1
        assert monitor.crying_detected
