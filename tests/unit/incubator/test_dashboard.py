"""Tests for the read-only rich dashboard rendering."""

from conftest import ScriptedMicrophone, ScriptedRandom
from rich.console import Console

from incubator.config import AppConfig
from incubator.dashboard import render, render_alerts, render_vitals
from incubator.domain.models import Orientation, Reading
from incubator.services.alert_engine import AlertEngine
from incubator.services.classifier import ThresholdClassifier
from incubator.services.monitoring import IncubatorMonitoringService


def _text(renderable: object) -> str:
    console = Console(width=160, record=True)
    console.print(renderable)
    return console.export_text()


def test_vitals_show_status_and_bands() -> None:
    reading = Reading(heart_rate=175, temperature=36.8, humidity=65, oxygen_level=98)
    statuses = ThresholdClassifier().classify(reading)

    text = _text(render_vitals(reading, statuses))

    assert "175 BPM" in text
    assert "High" in text
    assert "Normal: 130-170" in text
    assert "Normal: ≥95" in text
    assert "Target: 50-70" in text


def test_position_status_follows_tilt() -> None:
    level = Reading(heart_rate=150, temperature=36.8, humidity=65, oxygen_level=98)
    tilted = level.model_copy(update={"orientation": Orientation(x=9.8, y=0.0, z=9.8)})

    assert "Stable" in _text(render_vitals(level, ThresholdClassifier().classify(level)))
    tilted_text = _text(render_vitals(tilted, ThresholdClassifier().classify(tilted)))
    assert "Tilted" in tilted_text
    assert "Tilt: 45°" in tilted_text


def test_alert_table_counts_active_alerts() -> None:
    engine = AlertEngine()
    engine.post_info("System Online", "All monitoring systems are functioning normally")
    engine.report_emergency("Oxygen tank disconnected")

    text = _text(render_alerts(engine.snapshot()))

    assert "1 active / 2 total" in text
    assert "Oxygen tank disconnected" in text


def test_full_render_reads_service_state() -> None:
    service = IncubatorMonitoringService(
        AppConfig(), rng=ScriptedRandom(), microphone=ScriptedMicrophone([90.0])
    )
    service.run_audio_cycle()

    text = _text(render(service))

    assert "Crying detected" in text
    assert "Crying Detected" in text
