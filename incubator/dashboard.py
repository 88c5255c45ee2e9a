"""
Read-only terminal dashboard for the incubator monitor.

Renders the latest reading and the alert ledger with rich. It only ever reads
snapshots; acknowledging and dismissing go through the AlertEngine API.

Run with: incubator-monitor  (or python -m incubator.dashboard)
"""

import asyncio

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from incubator.config import get_config
from incubator.domain.models import Alert, AlertKind, AlertPriority, Channel, ChannelStatus, Reading
from incubator.services.classifier import CLINICAL_BANDS
from incubator.services.monitoring import IncubatorMonitoringService

console = Console()

_CHANNEL_LABELS = {
    Channel.HEART_RATE: ("Heart Rate", "BPM", "{:.0f}"),
    Channel.TEMPERATURE: ("Temperature", "°C", "{:.1f}"),
    Channel.HUMIDITY: ("Humidity", "%", "{:.0f}"),
    Channel.OXYGEN: ("Oxygen Level", "%", "{:.0f}"),
}

# Largest tilt from vertical still shown as stable
STABLE_TILT_DEGREES = 15.0

_PRIORITY_STYLES = {
    AlertPriority.HIGH: "bold red",
    AlertPriority.MEDIUM: "yellow",
    AlertPriority.LOW: "blue",
}


def _band_text(channel: Channel) -> str:
    band = CLINICAL_BANDS[channel]
    prefix = "Target" if not band.alerting else "Normal"
    if band.upper is None:
        return f"{prefix}: ≥{band.lower:g}"
    return f"{prefix}: {band.lower:g}-{band.upper:g}"


def render_vitals(reading: Reading, statuses: dict[Channel, ChannelStatus]) -> Table:
    table = Table(title="Vital Signs", expand=True)
    table.add_column("Channel")
    table.add_column("Value", justify="right")
    table.add_column("Status")
    table.add_column("Range", style="dim")

    for channel, (label, unit, fmt) in _CHANNEL_LABELS.items():
        status = statuses[channel]
        style = "green" if status.is_normal else "bold red"
        table.add_row(
            label,
            f"{fmt.format(reading.value_of(channel))} {unit}",
            f"[{style}]{status.label}[/{style}]",
            _band_text(channel),
        )

    o = reading.orientation
    stable = o.tilt_degrees <= STABLE_TILT_DEGREES
    position = "[green]Stable[/green]" if stable else "[yellow]Tilted[/yellow]"
    table.add_row(
        "Position",
        f"x={o.x:.2f} y={o.y:.2f} z={o.z:.2f}",
        position,
        f"Tilt: {o.tilt_degrees:.0f}° (stable ≤{STABLE_TILT_DEGREES:g}°)",
    )
    return table


def render_alerts(alerts: list[Alert]) -> Table:
    unacknowledged = sum(1 for a in alerts if not a.acknowledged)
    table = Table(title=f"Alert Center ({unacknowledged} active / {len(alerts)} total)", expand=True)
    table.add_column("Time", style="dim")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Description")
    table.add_column("Ack")

    for alert in alerts:
        style = _PRIORITY_STYLES[alert.priority]
        table.add_row(
            alert.timestamp.strftime("%H:%M:%S"),
            alert.kind.value,
            f"[{style}]{alert.title}[/{style}]",
            alert.description,
            "✓" if alert.acknowledged else "",
        )
    return table


def render_summary(counts: dict[AlertKind, int], crying: bool, audio_level: float) -> Panel:
    crying_text = "[bold yellow]Crying detected[/bold yellow]" if crying else "Quiet"
    return Panel(
        f"Emergency: {counts[AlertKind.EMERGENCY]}  "
        f"Warning: {counts[AlertKind.WARNING]}  "
        f"Info: {counts[AlertKind.INFO]}  |  "
        f"Audio level: {audio_level:.0f}%  {crying_text}",
        title="Unacknowledged",
    )


def render(service: IncubatorMonitoringService) -> Group:
    engine = service.engine
    return Group(
        render_summary(
            engine.unacknowledged_counts_by_kind(),
            service.audio_monitor.crying_detected,
            service.audio_monitor.audio_level,
        ),
        render_vitals(service.latest_reading, service.latest_statuses),
        render_alerts(engine.snapshot()),
    )


async def main(refresh_seconds: float = 0.5) -> None:
    """Run the monitor and redraw the dashboard until interrupted."""
    service = IncubatorMonitoringService(get_config(), configure_logs=True)
    async with service.monitoring_session():
        with Live(render(service), console=console, refresh_per_second=4) as live:
            while True:
                await asyncio.sleep(refresh_seconds)
                live.update(render(service))


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("[bold]Monitoring stopped[/bold]")


if __name__ == "__main__":
    run()
