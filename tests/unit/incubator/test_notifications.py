"""Tests for the logging notification dispatcher."""

from incubator.config import NotificationConfig
from incubator.domain.models import Alert, AlertKind, AlertPriority, EmergencyContact
from incubator.services.notifications import LoggingNotificationDispatcher


def _alert() -> Alert:
    return Alert(
        id="alert-1",
        kind=AlertKind.EMERGENCY,
        title="Medical Alert",
        description="Heart rate high (175 BPM)",
        priority=AlertPriority.HIGH,
        source_key="heart_rate_high",
    )


async def test_fans_out_over_every_enabled_channel(contacts: list[EmergencyContact]) -> None:
    dispatcher = LoggingNotificationDispatcher(NotificationConfig())

    result = await dispatcher.dispatch(_alert(), contacts)

    receipt = result.unwrap()
    assert receipt.alert_id == "alert-1"
    assert len(receipt.deliveries) == 3 * len(contacts)
    sms = [d for d in receipt.deliveries if d.channel == "sms"]
    assert [d.address for d in sms] == [c.phone for c in contacts]


async def test_disabled_channels_are_skipped(contacts: list[EmergencyContact]) -> None:
    config = NotificationConfig(sms_alerts=False, push_notifications=False)
    dispatcher = LoggingNotificationDispatcher(config)

    receipt = (await dispatcher.dispatch(_alert(), contacts)).unwrap()

    assert {d.channel for d in receipt.deliveries} == {"email"}
    assert [d.address for d in receipt.deliveries] == [c.email for c in contacts]


async def test_no_contacts_means_no_deliveries() -> None:
    receipt = (await LoggingNotificationDispatcher().dispatch(_alert(), [])).unwrap()
    assert receipt.deliveries == []
