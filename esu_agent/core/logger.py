"""
Centralized Logging for the ESU Activation Agent

Provides:
- Human readable, timestamped console output
- Local JSON log file with rotation
- Structured licensing events
"""

import sys
import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from logging.handlers import RotatingFileHandler
from dataclasses import dataclass, asdict
from enum import Enum


class EventType(str, Enum):
    """Types of licensing events."""
    ESU_INVENTORY = "esu.inventory"
    ESU_COMPLIANT = "esu.compliant"
    ESU_NON_COMPLIANT = "esu.non_compliant"
    ESU_KEY_INSTALLED = "esu.key_installed"
    ESU_ACTIVATION_REQUESTED = "esu.activation_requested"
    ESU_REMEDIATED = "esu.remediated"
    ESU_REMEDIATION_FAILED = "esu.remediation_failed"

    AGENT_ERROR = "agent.error"


@dataclass
class LicensingEvent:
    """Structured licensing event."""
    timestamp: str
    event_type: str
    severity: str  # info, warning, error
    message: str
    details: Dict[str, Any]

    def to_dict(self) -> Dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': _utc_now(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'event_type'):
            log_data['event_type'] = record.event_type
        if hasattr(record, 'details'):
            log_data['details'] = record.details

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class Logger:
    """
    Centralized logger for the ESU Activation Agent.

    Wraps a standard library logger with a console handler, an optional
    rotating JSON file handler and an in-memory list of licensing events.
    """

    def __init__(
        self,
        name: str = "EsuActivation",
        log_dir: Optional[Path] = None,
        level: str = "INFO",
        verbose: bool = False,
        file_enabled: bool = True,
        max_size_mb: int = 10,
        backup_count: int = 5
    ):
        self.name = name
        self.log_dir = Path(log_dir) if log_dir else None
        self.level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
        self.file_enabled = file_enabled and self.log_dir is not None
        self.max_size_mb = max_size_mb
        self.backup_count = backup_count

        self.events: List[LicensingEvent] = []

        self._setup_logging()

    def _setup_logging(self) -> None:
        """Setup logging handlers."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(self.level)

        # Close and clear existing handlers
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        # Console handler (human readable)
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.level)
        console_formatter = logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        if not self.file_enabled:
            return

        # File handler (JSON format, rotating)
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=self.max_size_mb * 1024 * 1024,
                backupCount=self.backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            self.file_enabled = False
            self.logger.warning(f"File logging disabled, cannot write to {self.log_dir}: {e}")
            return

        file_handler.setLevel(self.level)
        file_handler.setFormatter(JSONFormatter())
        self.logger.addHandler(file_handler)

    def log_event(
        self,
        event_type: EventType,
        message: str,
        severity: str = "info",
        details: Optional[Dict] = None
    ) -> LicensingEvent:
        """Log a licensing event."""
        event = LicensingEvent(
            timestamp=_utc_now(),
            event_type=event_type.value,
            severity=severity,
            message=message,
            details=details or {}
        )
        self.events.append(event)

        log_level = {
            'info': logging.INFO,
            'warning': logging.WARNING,
            'error': logging.ERROR,
            'critical': logging.CRITICAL
        }.get(severity, logging.INFO)

        self.logger.log(
            log_level,
            f"[{event_type.value}] {message}",
            extra={'event_type': event_type.value, 'details': details}
        )

        return event

    # Convenience methods for common events
    def inventory_found(self, count: int, labels: List[str]) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_INVENTORY,
            f"Found {count} ESU license record(s) with an installed key",
            "info",
            {"count": count, "years": labels}
        )

    def compliant(self, licensed: List[str]) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_COMPLIANT,
            f"ESU is licensed ({', '.join(licensed)})",
            "info",
            {"licensed_years": licensed}
        )

    def non_compliant(self) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_NON_COMPLIANT,
            "No ESU entitlement is licensed",
            "warning"
        )

    def key_installed(self, year: str, masked_key: str, returncode: int) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_KEY_INSTALLED,
            f"Installed {year} key {masked_key} (exit code {returncode})",
            "info" if returncode == 0 else "warning",
            {"year": year, "key": masked_key, "returncode": returncode}
        )

    def activation_requested(self, year: str, activation_id: str, returncode: int) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_ACTIVATION_REQUESTED,
            f"Requested online activation for {year} (exit code {returncode})",
            "info" if returncode == 0 else "warning",
            {"year": year, "activation_id": activation_id, "returncode": returncode}
        )

    def remediated(self, year: str) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_REMEDIATED,
            f"ESU {year} activation verified",
            "info",
            {"year": year}
        )

    def remediation_failed(self, reason: str, year: Optional[str] = None) -> LicensingEvent:
        return self.log_event(
            EventType.ESU_REMEDIATION_FAILED,
            f"ESU remediation failed: {reason}",
            "error",
            {"year": year, "reason": reason}
        )

    def agent_error(self, error: str, module: str) -> LicensingEvent:
        return self.log_event(
            EventType.AGENT_ERROR,
            f"Agent error in {module}: {error}",
            "error",
            {"error": error, "module": module}
        )

    # Standard logging methods
    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, extra=kwargs)

    def exception(self, message: str, **kwargs) -> None:
        self.logger.exception(message, extra=kwargs)


# Global logger instance
_logger: Optional[Logger] = None


def get_logger(name: str = "EsuActivation", **kwargs) -> Logger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        _logger = Logger(name=name, **kwargs)
    return _logger


def setup_logger(config, name: str = "EsuActivation") -> Logger:
    """Setup logger from configuration."""
    global _logger
    _logger = Logger(
        name=name,
        log_dir=Path(config.logging.local_path),
        level=config.logging.level,
        verbose=config.logging.verbose,
        file_enabled=config.logging.local_enabled,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count
    )
    return _logger
