"""
Core services for the incubator monitor.

This package contains signal generation, threshold classification, the alert
engine, crying detection, notification dispatch and the monitoring service
that runs them together.
"""

from .alert_engine import AlertChange, AlertEngine, ChangeType
from .audio_monitor import AudioAnomalyMonitor, SimulatedMicrophone
from .classifier import ThresholdClassifier
from .monitoring import IncubatorMonitoringService
from .notifications import LoggingNotificationDispatcher, NotificationDispatcher
from .signal_generator import RandomSource, SignalGenerator

__all__ = [
    "AlertChange",
    "AlertEngine",
    "AudioAnomalyMonitor",
    "ChangeType",
    "IncubatorMonitoringService",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "RandomSource",
    "SignalGenerator",
    "SimulatedMicrophone",
    "ThresholdClassifier",
]
