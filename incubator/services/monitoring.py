"""
Monitoring service that wires sampling, classification and alerting together.

Pipeline:
1. Vital-sign producer: generate (or ingest) a reading, classify it, feed the
   alert engine. Runs every ``vital_sampling_interval_seconds``.
2. Audio producer: sample the microphone and report crying. Runs every
   ``audio_sampling_interval_seconds``, independent of the vital signs.
3. Both producers share one AlertEngine, whose lock serializes ledger writes.

A failing tick is logged and the loop carries on at the next interval.
Stopping cancels both producers and leaves the ledger untouched.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from incubator.config import AppConfig, configure_logging, get_config
from incubator.domain.models import Alert, AudioEvent, Channel, ChannelStatus, Reading
from incubator.services.alert_engine import AlertEngine
from incubator.services.audio_monitor import AudioAnomalyMonitor, Microphone, SimulatedMicrophone
from incubator.services.classifier import ThresholdClassifier
from incubator.services.notifications import LoggingNotificationDispatcher, NotificationDispatcher
from incubator.services.signal_generator import RandomSource, SignalGenerator, seeded_random

logger = structlog.get_logger(__name__)


class IncubatorMonitoringService:
    """
    Runs the two periodic producers against a shared alert engine.

    Collaborators (random source, microphone, dispatcher, clocks) are
    injectable so tests can drive each cycle deterministically.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        rng: RandomSource | None = None,
        microphone: Microphone | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
        configure_logs: bool = False,
    ) -> None:
        self.config = config or get_config()
        if configure_logs:
            configure_logging(self.config.logging)
        self.logger = logger.bind(component="incubator_monitoring")

        monitoring = self.config.monitoring
        seed = monitoring.random_seed

        self.generator = SignalGenerator(self.config.signal, rng or seeded_random(seed), now)
        self.classifier = ThresholdClassifier()
        self.engine = AlertEngine(
            contacts=self.config.notifications.emergency_contacts,
            dispatcher=dispatcher or LoggingNotificationDispatcher(self.config.notifications),
            policy=self.config.alert_policy,
            crying_threshold=monitoring.crying_threshold,
            now=now,
        )
        self.audio_monitor = AudioAnomalyMonitor(
            microphone
            or SimulatedMicrophone(
                seeded_random(None if seed is None else seed + 1),
                crying_probability=monitoring.crying_probability,
            ),
            on_crying=self.engine.report_crying,
            threshold=monitoring.crying_threshold,
            display_ttl_seconds=monitoring.crying_display_ttl_seconds,
            clock=clock,
            now=now,
        )

        self._latest_reading = self.generator.initial_reading()
        self._latest_statuses = self.classifier.classify(self._latest_reading)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def latest_reading(self) -> Reading:
        return self._latest_reading

    @property
    def latest_statuses(self) -> dict[Channel, ChannelStatus]:
        return dict(self._latest_statuses)

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    # ------------------------------------------------------------------
    # Single cycles
    # ------------------------------------------------------------------

    def _process(self, reading: Reading) -> list[Alert]:
        statuses = self.classifier.classify(reading)
        self._latest_reading = reading
        self._latest_statuses = statuses
        return self.engine.evaluate(self.classifier.alerting(statuses))

    def run_vital_cycle(self) -> list[Alert]:
        """Generate the next reading and evaluate it. Returns alerts raised."""
        return self._process(self.generator.tick(self._latest_reading))

    def ingest_reading(self, reading: Reading) -> list[Alert]:
        """Evaluate an externally supplied reading; out-of-range values are clamped."""
        return self._process(reading.clamped())

    def run_audio_cycle(self) -> AudioEvent | None:
        return self.audio_monitor.sample_once()

    # ------------------------------------------------------------------
    # Periodic producers
    # ------------------------------------------------------------------

    async def _run_periodic(self, name: str, interval: float, step: Callable[[], object]) -> None:
        log = self.logger.bind(producer=name)
        log.info("producer_started", interval_seconds=interval)
        try:
            while True:
                started = time.perf_counter()
                try:
                    step()
                except Exception as e:
                    log.exception(f"{name}_sample_failed", error=str(e))

                elapsed = time.perf_counter() - started
                sleep_time = max(0.0, interval - elapsed)
                if sleep_time == 0:
                    log.warning(
                        "producer_slower_than_interval",
                        elapsed_seconds=round(elapsed, 3),
                        interval_seconds=interval,
                    )
                await asyncio.sleep(sleep_time)
        except asyncio.CancelledError:
            log.info("producer_stopped")
            raise

    async def start(self) -> None:
        """Start both producers. Calling start on a running service does nothing."""
        if self.is_running:
            return

        if self.config.alert_policy.post_system_online:
            self.engine.post_info("System Online", "All monitoring systems are functioning normally")

        monitoring = self.config.monitoring
        self._tasks = [
            asyncio.create_task(
                self._run_periodic(
                    "vital", monitoring.vital_sampling_interval_seconds, self.run_vital_cycle
                ),
                name="vital-producer",
            ),
            asyncio.create_task(
                self._run_periodic(
                    "audio", monitoring.audio_sampling_interval_seconds, self.run_audio_cycle
                ),
                name="audio-producer",
            ),
        ]
        self.logger.info("monitoring_started")

    async def stop(self) -> None:
        """Cancel both producers and give in-flight notifications a bounded grace period."""
        self.logger.info("stopping_monitoring_service")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.engine.drain_notifications(
            timeout=self.config.notifications.shutdown_grace_seconds
        )
        self.logger.info("monitoring_stopped", alerts_in_ledger=len(self.engine.snapshot()))

    @asynccontextmanager
    async def monitoring_session(self) -> AsyncIterator["IncubatorMonitoringService"]:
        """Run the producers for the lifetime of the ``async with`` block."""
        await self.start()
        try:
            yield self
        finally:
            await self.stop()
