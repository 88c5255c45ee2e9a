"""
Notification fan-out for newly raised high-priority alerts.

Transports (phone, email, SMS) live outside this package. The dispatcher
here decides which contacts are reached over which enabled channels and
records each delivery; a production deployment plugs a real transport in
behind the same Protocol and queues/retries there.
"""

from datetime import UTC, datetime
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from incubator.config import NotificationConfig
from incubator.domain.models import Alert, EmergencyContact
from incubator.domain.result import Result

logger = structlog.get_logger(__name__)


class Delivery(BaseModel):
    """One message handed to one transport for one contact."""

    model_config = ConfigDict(frozen=True)

    channel: str
    contact: str
    address: str


class DispatchReceipt(BaseModel):
    """What a dispatcher did with one alert."""

    model_config = ConfigDict(frozen=True)

    alert_id: str
    deliveries: list[Delivery] = Field(default_factory=list)
    dispatched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NotificationDispatcher(Protocol):
    """
    Protocol for delivering an alert to emergency contacts.

    Design: async-first, single method. Failures come back as ``Result.err``;
    the engine also guards against a dispatcher that raises.
    """

    async def dispatch(
        self, alert: Alert, contacts: list[EmergencyContact]
    ) -> Result[DispatchReceipt, Exception]: ...


class LoggingNotificationDispatcher:
    """
    Development dispatcher that logs every delivery instead of sending it.

    Honours the email/SMS/push toggles from configuration.
    """

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self.config = config or NotificationConfig()
        self.logger = logger.bind(component="notification_dispatcher")

    def _deliveries(self, contact: EmergencyContact) -> list[Delivery]:
        deliveries = []
        if self.config.sms_alerts:
            deliveries.append(Delivery(channel="sms", contact=contact.name, address=contact.phone))
        if self.config.email_alerts:
            deliveries.append(
                Delivery(channel="email", contact=contact.name, address=contact.email)
            )
        if self.config.push_notifications:
            deliveries.append(Delivery(channel="push", contact=contact.name, address=contact.name))
        return deliveries

    async def dispatch(
        self, alert: Alert, contacts: list[EmergencyContact]
    ) -> Result[DispatchReceipt, Exception]:
        try:
            deliveries = [d for contact in contacts for d in self._deliveries(contact)]
            for delivery in deliveries:
                self.logger.info(
                    "notification_sent",
                    alert_id=alert.id,
                    channel=delivery.channel,
                    contact=delivery.contact,
                    address=delivery.address,
                    title=alert.title,
                )
            return Result.ok(DispatchReceipt(alert_id=alert.id, deliveries=deliveries))
        except Exception as e:
            self.logger.exception("notification_dispatch_error", alert_id=alert.id, error=str(e))
            return Result.err(e)
