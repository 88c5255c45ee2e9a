"""
Alert engine: the ledger of alerts and the rules that open them.

Key behaviours:
- Edge-triggered alerting with dedup: a condition (``source_key``) that is
  already open never raises a second alert, however many abnormal samples
  arrive. Once the operator dismisses the alert the key is quiescent again
  and the next abnormal sample re-opens it with a new id.
- No auto-resolve: a channel returning to normal is logged, the alert stays
  until a human dismisses it.
- Single writer discipline: every check-and-create, acknowledge and dismiss
  runs under one lock. The ledger itself is an immutable tuple replaced on
  each mutation, so ``snapshot()`` never waits on a writer.
- Subscribers receive changes in the order they were applied to the ledger,
  even when a callback mutates the engine or writers race on threads.
- Notifications are fire-and-forget: the dispatcher runs in its own task,
  never awaited by the producer that raised the alert.
"""

import asyncio
import math
import threading
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict

from incubator.config import AlertPolicyConfig
from incubator.domain.models import (
    Alert,
    AlertKind,
    AlertPriority,
    Channel,
    ChannelStatus,
    Direction,
    EmergencyContact,
)
from incubator.domain.result import AlertNotFoundError, Result
from incubator.services.notifications import NotificationDispatcher

logger = structlog.get_logger(__name__)

CRYING_SOURCE_KEY = "crying"
SYSTEM_ONLINE_SOURCE_KEY = "system_online"
DEFAULT_CRYING_THRESHOLD = 70.0

MEDICAL_ALERT_TITLE = "Medical Alert"

_CONDITION_DESCRIPTIONS: dict[tuple[Channel, Direction], str] = {
    (Channel.HEART_RATE, Direction.LOW): "Heart rate low ({value:.0f} BPM)",
    (Channel.HEART_RATE, Direction.HIGH): "Heart rate high ({value:.0f} BPM)",
    (Channel.TEMPERATURE, Direction.LOW): "Temperature low ({value:.1f}°C)",
    (Channel.TEMPERATURE, Direction.HIGH): "Temperature high ({value:.1f}°C)",
    (Channel.OXYGEN, Direction.LOW): "Low oxygen levels ({value:.0f}%)",
}


class ChangeType(str, Enum):
    RAISED = "raised"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"


class AlertChange(BaseModel):
    """A ledger mutation as pushed to subscribers."""

    model_config = ConfigDict(frozen=True)

    change: ChangeType
    alert: Alert


AlertRaisedHandler = Callable[[Alert], None]
AlertChangedHandler = Callable[[AlertChange], None]


class _Subscription:
    def __init__(
        self,
        on_alert_raised: AlertRaisedHandler | None,
        on_alert_changed: AlertChangedHandler | None,
    ) -> None:
        self.on_alert_raised = on_alert_raised
        self.on_alert_changed = on_alert_changed


def _default_alert_id() -> str:
    return f"alert-{uuid.uuid4().hex[:12]}"


class AlertEngine:
    """
    Owns the alert ledger and applies dedup, lifecycle and notification rules.

    Consumers get frozen ``Alert`` instances; nothing outside the engine can
    change an alert in the ledger.
    """

    def __init__(
        self,
        contacts: Iterable[EmergencyContact] = (),
        dispatcher: NotificationDispatcher | None = None,
        policy: AlertPolicyConfig | None = None,
        crying_threshold: float = DEFAULT_CRYING_THRESHOLD,
        now: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.contacts: tuple[EmergencyContact, ...] = tuple(contacts)
        self.dispatcher = dispatcher
        self.policy = policy or AlertPolicyConfig()
        self.crying_threshold = crying_threshold
        self._now = now or (lambda: datetime.now(UTC))
        self._new_id = id_factory or _default_alert_id
        self.logger = logger.bind(component="alert_engine")

        self._lock = threading.Lock()
        self._ledger: tuple[Alert, ...] = ()
        self._open: dict[str, str] = {}
        self._last_status: dict[Channel, ChannelStatus] = {}

        self._subscribers: list[_Subscription] = []
        self._changes: deque[AlertChange] = deque()
        self._publishing = False
        self._pending_dispatches: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        on_alert_raised: AlertRaisedHandler | None = None,
        on_alert_changed: AlertChangedHandler | None = None,
    ) -> Callable[[], None]:
        """Register push callbacks. Returns a function that unsubscribes."""
        subscription = _Subscription(on_alert_raised, on_alert_changed)
        with self._lock:
            self._subscribers.append(subscription)

        def unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscribers:
                    self._subscribers.remove(subscription)

        return unsubscribe

    def _flush_changes(self) -> None:
        """
        Deliver queued ledger changes to subscribers in mutation order.

        Only one caller delivers at a time. Changes queued meanwhile, by
        another writer thread or by a subscriber calling back into the
        engine, are delivered by that caller after the current change has
        reached every subscriber.
        """
        with self._lock:
            if self._publishing:
                return
            self._publishing = True

        while True:
            with self._lock:
                if not self._changes:
                    self._publishing = False
                    return
                change = self._changes.popleft()
                subscribers = list(self._subscribers)
            self._deliver(change, subscribers)

    def _deliver(self, change: AlertChange, subscribers: list[_Subscription]) -> None:
        for subscription in subscribers:
            try:
                if change.change is ChangeType.RAISED and subscription.on_alert_raised:
                    subscription.on_alert_raised(change.alert)
                if subscription.on_alert_changed:
                    subscription.on_alert_changed(change)
            except Exception as e:
                self.logger.exception(
                    "subscriber_callback_failed",
                    alert_id=change.alert.id,
                    change=change.change.value,
                    error=str(e),
                )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self) -> list[Alert]:
        """All current alerts, most recent first."""
        return list(self._ledger)

    def get(self, alert_id: str) -> Alert | None:
        return next((a for a in self._ledger if a.id == alert_id), None)

    def is_open(self, source_key: str) -> bool:
        return source_key in self._open

    def active_alerts(self) -> list[Alert]:
        """Unacknowledged alerts, most recent first."""
        return [a for a in self._ledger if not a.acknowledged]

    def recent_activity(self, limit: int = 5) -> list[Alert]:
        """Acknowledged alerts still in the ledger, most recent first."""
        return [a for a in self._ledger if a.acknowledged][:limit]

    def unacknowledged_counts_by_kind(self) -> dict[AlertKind, int]:
        counts = {kind: 0 for kind in AlertKind}
        for alert in self._ledger:
            if not alert.acknowledged:
                counts[alert.kind] += 1
        return counts

    def unacknowledged_high_priority_count(self) -> int:
        return sum(
            1 for a in self._ledger if a.priority is AlertPriority.HIGH and not a.acknowledged
        )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _open_alert(
        self,
        source_key: str,
        kind: AlertKind,
        title: str,
        description: str,
        priority: AlertPriority,
        acknowledged: bool = False,
    ) -> Alert | None:
        """Create an alert unless ``source_key`` is already open."""
        with self._lock:
            existing_id = self._open.get(source_key)
            if existing_id is not None:
                self.logger.debug(
                    "alert_suppressed", source_key=source_key, open_alert_id=existing_id
                )
                return None

            alert = Alert(
                id=self._new_id(),
                kind=kind,
                title=title,
                description=description,
                timestamp=self._now(),
                priority=priority,
                acknowledged=acknowledged,
                source_key=source_key,
            )
            self._ledger = (alert, *self._ledger)
            self._open[source_key] = alert.id
            self._changes.append(AlertChange(change=ChangeType.RAISED, alert=alert))

        self.logger.info(
            "alert_raised",
            alert_id=alert.id,
            source_key=source_key,
            kind=kind.value,
            priority=priority.value,
        )
        self._flush_changes()
        if alert.priority is AlertPriority.HIGH and not alert.acknowledged:
            self._schedule_dispatch(alert)
        return alert

    def evaluate(self, statuses: Iterable[ChannelStatus]) -> list[Alert]:
        """
        Apply one sample's classifications to the ledger.

        Returns the alerts created by this sample (usually none).
        """
        raised: list[Alert] = []
        for status in statuses:
            with self._lock:
                previous = self._last_status.get(status.channel)
                self._last_status[status.channel] = status

            if status.direction is None:
                if previous is not None and previous.source_key is not None:
                    # Still open until an operator dismisses it
                    self.logger.info(
                        "condition_resolved",
                        channel=status.channel.value,
                        source_key=previous.source_key,
                        value=status.value,
                        alert_open=self.is_open(previous.source_key),
                    )
                continue

            template = _CONDITION_DESCRIPTIONS.get(
                (status.channel, status.direction), "{channel} {label} ({value:.1f})"
            )
            alert = self._open_alert(
                source_key=f"{status.channel.value}_{status.direction.value}",
                kind=AlertKind.EMERGENCY,
                title=MEDICAL_ALERT_TITLE,
                description=template.format(
                    channel=status.channel.value, label=status.label.lower(), value=status.value
                ),
                priority=AlertPriority.HIGH,
            )
            if alert is not None:
                raised.append(alert)
        return raised

    def report_emergency(self, message: str) -> Alert | None:
        """Raise an emergency keyed by its exact message text."""
        return self._open_alert(
            source_key=message,
            kind=AlertKind.EMERGENCY,
            title=MEDICAL_ALERT_TITLE,
            description=message,
            priority=AlertPriority.HIGH,
        )

    def report_crying(self, intensity: float) -> Alert | None:
        """Raise a crying alert when intensity exceeds the threshold. NaN is ignored."""
        if math.isnan(intensity):
            self.logger.warning("crying_intensity_invalid", intensity=intensity)
            return None
        intensity = max(0.0, min(100.0, intensity))
        if intensity <= self.crying_threshold:
            return None
        return self._open_alert(
            source_key=CRYING_SOURCE_KEY,
            kind=AlertKind.WARNING,
            title="Crying Detected",
            description=f"High intensity crying detected ({round(intensity)}%)",
            priority=self.policy.crying_priority,
        )

    def post_info(
        self,
        title: str,
        description: str,
        source_key: str = SYSTEM_ONLINE_SOURCE_KEY,
    ) -> Alert | None:
        """Record an informational entry. It is born acknowledged and never notifies."""
        return self._open_alert(
            source_key=source_key,
            kind=AlertKind.INFO,
            title=title,
            description=description,
            priority=AlertPriority.LOW,
            acknowledged=True,
        )

    def acknowledge(self, alert_id: str) -> Result[Alert, AlertNotFoundError]:
        """Mark an alert acknowledged. Idempotent; the key stays open."""
        with self._lock:
            current = next((a for a in self._ledger if a.id == alert_id), None)
            if current is None:
                self.logger.warning("acknowledge_unknown_alert", alert_id=alert_id)
                return Result.err(AlertNotFoundError(alert_id))
            if current.acknowledged:
                return Result.ok(current)
            updated = current.model_copy(update={"acknowledged": True})
            self._ledger = tuple(updated if a.id == alert_id else a for a in self._ledger)
            self._changes.append(AlertChange(change=ChangeType.ACKNOWLEDGED, alert=updated))

        self.logger.info("alert_acknowledged", alert_id=alert_id, source_key=updated.source_key)
        self._flush_changes()
        return Result.ok(updated)

    def dismiss(self, alert_id: str) -> Result[Alert, AlertNotFoundError]:
        """Remove an alert from the ledger and return its key to quiescent."""
        with self._lock:
            removed = next((a for a in self._ledger if a.id == alert_id), None)
            if removed is None:
                self.logger.warning("dismiss_unknown_alert", alert_id=alert_id)
                return Result.err(AlertNotFoundError(alert_id))
            self._ledger = tuple(a for a in self._ledger if a.id != alert_id)
            if self._open.get(removed.source_key) == alert_id:
                del self._open[removed.source_key]
            self._changes.append(AlertChange(change=ChangeType.DISMISSED, alert=removed))

        self.logger.info("alert_dismissed", alert_id=alert_id, source_key=removed.source_key)
        self._flush_changes()
        return Result.ok(removed)

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    def _schedule_dispatch(self, alert: Alert) -> None:
        dispatcher = self.dispatcher
        if dispatcher is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called from plain synchronous code: give the dispatch its own loop
            threading.Thread(
                target=asyncio.run,
                args=(self._dispatch(dispatcher, alert),),
                name=f"dispatch-{alert.id}",
                daemon=True,
            ).start()
            return

        task = loop.create_task(self._dispatch(dispatcher, alert), name=f"dispatch-{alert.id}")
        self._pending_dispatches.add(task)
        task.add_done_callback(self._pending_dispatches.discard)

    async def _dispatch(self, dispatcher: NotificationDispatcher, alert: Alert) -> None:
        try:
            result = await dispatcher.dispatch(alert, list(self.contacts))
        except Exception as e:
            self.logger.exception("notification_dispatch_failed", alert_id=alert.id, error=str(e))
            return

        if result.is_err():
            self.logger.error(
                "notification_dispatch_failed",
                alert_id=alert.id,
                error=str(result.unwrap_err()),
            )
        else:
            receipt = result.unwrap()
            self.logger.info(
                "notification_dispatched",
                alert_id=alert.id,
                deliveries=len(receipt.deliveries),
            )

    async def drain_notifications(self, timeout: float | None = None) -> None:
        """
        Wait for dispatches started from the running event loop.

        With a ``timeout``, dispatches still running when it expires are
        cancelled, so a hung transport cannot hold up shutdown.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while pending := {t for t in self._pending_dispatches if not t.done()}:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            _, still_running = await asyncio.wait(pending, timeout=remaining)
            if still_running:
                self.logger.warning(
                    "notification_dispatch_abandoned",
                    dispatches=sorted(t.get_name() for t in still_running),
                )
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
