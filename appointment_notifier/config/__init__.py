"""Configuration management module for the appointment notifier."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, validate_config_file
from .models import (
    AppConfig,
    BookingConfig,
    EmailConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    QueueConfig,
    ReminderConfig,
    RetryConfig,
    StatusReportConfig,
)

__all__ = [
    # Main loader functions
    "load_config",
    "validate_config_file",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "RetryConfig",
    "ReminderConfig",
    "QueueConfig",
    "BookingConfig",
    "EmailConfig",
    "StatusReportConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
