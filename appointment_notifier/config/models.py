"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _validated_duration(value: str, label: str, min_seconds: float, max_seconds: float) -> str:
    """Parse a duration setting and check its range, keeping the original string."""
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, min_seconds=min_seconds, max_seconds=max_seconds, label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value


class RetryConfig(BaseModel):
    """Retry settings shared by synchronous sends and the deferred dispatcher."""

    max_attempts: int = Field(
        3, ge=1, le=10, description="Total delivery attempts before giving up"
    )
    base_delay: str = Field(
        "5s", description="Linear backoff unit; retry N waits base_delay * N"
    )

    # Computed field
    base_delay_seconds: Optional[float] = None

    @field_validator("base_delay")
    @classmethod
    def validate_base_delay(cls, v: str) -> str:
        """Validate the backoff unit (1ms to 10 minutes)."""
        return _validated_duration(v, "Retry base delay", 0.001, 600)

    @model_validator(mode="after")
    def compute_seconds(self):
        """Compute base delay in seconds."""
        self.base_delay_seconds = parse_duration(self.base_delay)
        return self


class ReminderConfig(BaseModel):
    """Reminder scheduling settings."""

    lead_time: str = Field("24h", description="How long before the appointment the reminder goes out")

    # Computed field
    lead_time_hours: Optional[float] = None

    @field_validator("lead_time")
    @classmethod
    def validate_lead_time(cls, v: str) -> str:
        """Validate reminder lead time (1 minute to 7 days)."""
        return _validated_duration(v, "Reminder lead time", 60, 7 * 86400)

    @model_validator(mode="after")
    def compute_hours(self):
        """Compute lead time in hours."""
        self.lead_time_hours = parse_duration(self.lead_time) / 3600
        return self


class QueueConfig(BaseModel):
    """Deferred notification queue settings."""

    idle_interval: str = Field(
        "100ms", description="Pause between dispatcher iterations"
    )

    # Computed field
    idle_interval_seconds: Optional[float] = None

    @field_validator("idle_interval")
    @classmethod
    def validate_idle_interval(cls, v: str) -> str:
        """Validate dispatcher pause (1ms to 1 minute)."""
        return _validated_duration(v, "Queue idle interval", 0.001, 60)

    @model_validator(mode="after")
    def compute_seconds(self):
        """Compute idle interval in seconds."""
        self.idle_interval_seconds = parse_duration(self.idle_interval)
        return self


class BookingConfig(BaseModel):
    """Links back into the booking frontend."""

    default_url: str = Field(
        "https://fixwell-services.com",
        min_length=1,
        description="Rebooking URL used when a cancellation does not supply one",
    )

    @field_validator("default_url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        """Strip whitespace from the URL."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("default_url cannot be empty")
        return stripped


class EmailConfig(BaseModel):
    """Email transport settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")


class StatusReportConfig(BaseModel):
    """Periodic queue status reporting."""

    enabled: bool = Field(True, description="Log queue status periodically")
    interval: str = Field("5m", description="Interval between status reports")

    # Computed field
    interval_seconds: Optional[int] = None

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        """Validate status report interval (10 seconds to 24 hours)."""
        return _validated_duration(v, "Status report interval", 10, 86400)

    @model_validator(mode="after")
    def compute_seconds(self):
        """Compute interval in whole seconds."""
        self.interval_seconds = int(parse_duration(self.interval))
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True, "validate_default": True}


class AppConfig(BaseModel):
    """Root configuration object for the appointment notifier."""

    retry: RetryConfig = Field(default_factory=RetryConfig, description="Retry policy")
    reminders: ReminderConfig = Field(
        default_factory=ReminderConfig, description="Reminder scheduling"
    )
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Deferred queue")
    booking: BookingConfig = Field(default_factory=BookingConfig, description="Booking links")
    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    status_report: StatusReportConfig = Field(
        default_factory=StatusReportConfig, description="Queue status reporting"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
