"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Contacts and cadences overridable without code changes
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, TypeAdapter, model_validator

from incubator.domain.models import AlertPriority, EmergencyContact, Orientation

# Load environment variables from .env file
load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _default_contacts() -> list[EmergencyContact]:
    return [
        EmergencyContact(
            name="Dr. Sarah Johnson", phone="+1 (555) 123-4567", email="dr.johnson@hospital.com"
        ),
        EmergencyContact(name="Nurse Station", phone="+1 (555) 987-6543", email="nurses@hospital.com"),
        EmergencyContact(
            name="Parents (Emergency)", phone="+1 (555) 456-7890", email="parents@email.com"
        ),
    ]


class MonitoringConfig(BaseModel):
    """Sampling cadences and crying detection settings."""

    vital_sampling_interval_seconds: float = Field(
        default=2.0, gt=0.0, description="Interval between vital-sign samples"
    )
    audio_sampling_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Interval between microphone samples"
    )
    crying_threshold: float = Field(
        default=70.0, ge=0.0, le=100.0, description="Intensity above which crying raises an alert"
    )
    crying_display_ttl_seconds: float = Field(
        default=3.0, gt=0.0, description="How long the crying badge stays visible"
    )
    crying_probability: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Chance per audio sample of a simulated cry"
    )
    random_seed: int | None = Field(default=None, description="Seed for reproducible runs")


class SignalConfig(BaseModel):
    """Random-walk step sizes and the reading the generator starts from."""

    heart_rate_step: float = Field(default=5.0, ge=0.0)
    temperature_step: float = Field(default=0.15, ge=0.0)
    humidity_step: float = Field(default=2.5, ge=0.0)
    oxygen_step: float = Field(default=1.0, ge=0.0)
    orientation_step: float = Field(default=1.0, ge=0.0)
    gravity_jitter: float = Field(default=0.25, ge=0.0)

    initial_heart_rate: float = 145.0
    initial_temperature: float = 36.8
    initial_humidity: float = 65.0
    initial_oxygen_level: float = 98.0
    initial_orientation: Orientation = Field(
        default_factory=lambda: Orientation(x=0.2, y=-0.1, z=9.8)
    )


class NotificationConfig(BaseModel):
    """Who gets told about high-priority alerts, and over which channels."""

    email_alerts: bool = True
    sms_alerts: bool = True
    push_notifications: bool = True
    emergency_contacts: list[EmergencyContact] = Field(default_factory=_default_contacts)
    shutdown_grace_seconds: float = Field(
        default=5.0, gt=0.0, description="How long stop() waits for in-flight notifications"
    )


class AlertPolicyConfig(BaseModel):
    """Alert shaping that differs between deployments."""

    crying_priority: AlertPriority = Field(
        default=AlertPriority.MEDIUM, description="Priority assigned to crying alerts"
    )
    post_system_online: bool = Field(
        default=True, description="Record an acknowledged info entry when monitoring starts"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    signal: SignalConfig = Field(default_factory=SignalConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    alert_policy: AlertPolicyConfig = Field(default_factory=AlertPolicyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


_contacts_adapter = TypeAdapter(list[EmergencyContact])


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> LogLevel:
        v = val.strip().upper()
        return cast(
            LogLevel,
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    seed = os.getenv("RANDOM_SEED")
    monitoring_config = MonitoringConfig(
        vital_sampling_interval_seconds=float(os.getenv("VITAL_SAMPLING_INTERVAL_SECONDS", "2.0")),
        audio_sampling_interval_seconds=float(os.getenv("AUDIO_SAMPLING_INTERVAL_SECONDS", "1.0")),
        crying_threshold=float(os.getenv("CRYING_THRESHOLD", "70")),
        random_seed=int(seed) if seed else None,
    )

    contacts_json = os.getenv("EMERGENCY_CONTACTS")
    notification_config = NotificationConfig(
        email_alerts=_parse_bool(os.getenv("NOTIFY_EMAIL"), True),
        sms_alerts=_parse_bool(os.getenv("NOTIFY_SMS"), True),
        push_notifications=_parse_bool(os.getenv("NOTIFY_PUSH"), True),
        shutdown_grace_seconds=float(os.getenv("NOTIFICATION_SHUTDOWN_GRACE_SECONDS", "5.0")),
        emergency_contacts=(
            _contacts_adapter.validate_json(contacts_json) if contacts_json else _default_contacts()
        ),
    )

    alert_policy = AlertPolicyConfig(
        crying_priority=AlertPriority(os.getenv("CRYING_ALERT_PRIORITY", "medium").strip().lower()),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        monitoring=monitoring_config,
        notifications=notification_config,
        alert_policy=alert_policy,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog for the whole process."""
    processors: list[structlog.typing.Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.format == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
