"""Main entry point for the Appointment Notifier service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from appointment_notifier.config.environment import EnvironmentConfig
from appointment_notifier.config.exceptions import ConfigurationError
from appointment_notifier.config.loader import load_config
from appointment_notifier.config.models import AppConfig
from appointment_notifier.logging import get_logger
from appointment_notifier.logging.config import configure_logging
from appointment_notifier.notifications.models import NotificationError
from appointment_notifier.notifications.router import AppointmentEvent
from appointment_notifier.notifications.service import AppointmentNotificationService
from appointment_notifier.scheduler import QueueStatusReporter

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif env_config.log_level:
        env_config.log_level = env_config.log_level.upper()
    else:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def read_json_file(path: Path, label: str) -> Dict[str, Any]:
    """
    Read a JSON object from disk.

    Raises:
        ConfigurationError: If the file is missing, malformed, or not an object
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"{label} file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in {label} file {path}: {e}",
            suggestions=["Check the file with a JSON linter"],
        )

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{label} file {path} must contain a JSON object, got {type(data).__name__}"
        )
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Appointment Notifier - confirmation, reminder, cancellation and reschedule emails"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument(
        "--event",
        choices=[e.value for e in AppointmentEvent],
        default=None,
        help="Appointment lifecycle event to handle",
    )
    parser.add_argument(
        "--appointment",
        type=Path,
        default=None,
        help="JSON file with the appointment (required with --event)",
    )
    parser.add_argument(
        "--options",
        type=Path,
        default=None,
        help="JSON file with event options (e.g., oldAppointment, cancellationReason)",
    )
    parser.add_argument(
        "--exit-after-event",
        action="store_true",
        help="Exit once the event's immediate emails are sent, discarding deferred jobs",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help=(
            "Print the notification queue status as JSON and exit. The queue is "
            "in-memory, so this only shows jobs queued by --event in the same run"
        ),
    )
    return parser


def main(argv=None) -> int:
    """
    Main entry point for the Appointment Notifier.

    Returns:
        Exit code (0 for success, 1 for configuration or delivery failure).
    """
    start_time = time.time()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.event and not args.appointment:
        parser.error("--appointment is required with --event")

    try:
        # Step 1: Load configuration (before logging for format detection)
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        # Step 2: Configure logging
        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            "Appointment Notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "appointment_event": args.event,
            },
        )

        # Step 3: Build the notification service
        service = AppointmentNotificationService.from_config(app_config, env_config)

        logger.info(
            "Services initialized",
            extra={
                "event": "services.initialized",
                "max_attempts": app_config.retry.max_attempts,
                "reminder_lead_hours": app_config.reminders.lead_time_hours,
            },
        )

        # Step 4: Handle a single lifecycle event, if requested
        if args.event:
            appointment = read_json_file(args.appointment, "Appointment")
            options = read_json_file(args.options, "Options") if args.options else None

            service.handle_appointment_event(args.event, appointment, options)

            logger.info(
                f"Handled appointment event: {args.event}",
                extra={
                    "event": "service.event.completed",
                    "appointment_event": args.event,
                    "queue_length": service.get_queue_status().queue_length,
                },
            )

        # The queue lives in this process only; combined with --event this shows
        # the reminders that event scheduled
        if args.status:
            print(json.dumps(service.get_queue_status().to_dict(), indent=2))
            return 0

        if args.event and args.exit_after_event:
            pending = service.get_queue_status().queue_length
            if pending:
                logger.warning(
                    f"Exiting with {pending} deferred notifications discarded",
                    extra={"event": "service.pending_discarded", "queue_length": pending},
                )
            return 0

        # Step 5: Daemon mode, keep the dispatcher alive until signalled
        shutdown_event = threading.Event()
        reporter = None

        if app_config.status_report.enabled:
            reporter = QueueStatusReporter(
                status_callable=service.get_queue_status,
                interval_seconds=app_config.status_report.interval_seconds,
                shutdown_event=shutdown_event,
            )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum}
            )
            if reporter:
                reporter.shutdown(wait=False)
            shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        if reporter:
            reporter.start()

        logger.info(
            "Notifier running. Press Ctrl+C to stop",
            extra={"event": "service.daemon_mode.started"}
        )

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info(
                "Keyboard interrupt received, shutting down",
                extra={"event": "service.keyboard_interrupt"}
            )
            if reporter:
                reporter.shutdown(wait=False)

        uptime_seconds = time.time() - start_time
        logger.info(
            "Appointment Notifier stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(uptime_seconds, 2),
                "queue_length": service.get_queue_status().queue_length,
            }
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"}
        )
        return 1
    except NotificationError as e:
        print(f"Notification failed: {e}", file=sys.stderr)
        logger.error(
            f"Notification failed: {e}",
            extra={"event": "service.event.failed", "error_type": type(e).__name__}
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={
                "event": "service.fatal",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
