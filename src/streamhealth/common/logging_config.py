"""
Centralized Logging Configuration for StreamHealth

Structured logging with JSON formatting. All component loggers live under
the ``streamhealth`` namespace so a single ``setup_logging`` call covers them.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

ROOT_LOGGER = "streamhealth"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON

        Args:
            record: Log record

        Returns:
            JSON string
        """
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    service_name: Optional[str] = None,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True
) -> logging.Logger:
    """
    Set up logging for a service

    Args:
        service_name: Subsystem to configure (e.g. 'ingestion', 'supervisor');
            None configures every streamhealth logger
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path (None for stdout only)
        json_format: Use JSON formatting (True) or simple text (False)

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper())
    logger_name = f"{ROOT_LOGGER}.{service_name}" if service_name else ROOT_LOGGER
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.handlers.clear()

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class ServiceLogger:
    """
    Wrapper for component logging with service context
    """

    def __init__(self, service_name: str, component: str = None):
        """
        Args:
            service_name: Subsystem name (e.g. 'ingestion', 'supervisor')
            component: Optional component name within the subsystem
        """
        self.logger = logging.getLogger(f"{ROOT_LOGGER}.{service_name}")
        self.service_name = service_name
        self.component = component

    def _add_context(self, extra: Dict[str, Any] = None) -> Dict[str, Any]:
        context = {'service': self.service_name}
        if self.component:
            context['component'] = self.component
        if extra:
            context.update(extra)
        return context

    def debug(self, message: str, extra: Dict[str, Any] = None):
        self.logger.debug(message, extra=self._add_context(extra))

    def info(self, message: str, extra: Dict[str, Any] = None):
        self.logger.info(message, extra=self._add_context(extra))

    def warning(self, message: str, extra: Dict[str, Any] = None):
        self.logger.warning(message, extra=self._add_context(extra))

    def error(self, message: str, extra: Dict[str, Any] = None, exc_info: bool = False):
        self.logger.error(message, extra=self._add_context(extra), exc_info=exc_info)


class MetricsLogger:
    """
    Log metrics as structured records suitable for scraping
    """

    def __init__(self, service_name: str):
        self.logger = logging.getLogger(f"{ROOT_LOGGER}.{service_name}.metrics")

    def log_metric(self, metric_name: str, value: float, labels: Dict[str, str] = None):
        """
        Log a metric value

        Args:
            metric_name: Name of the metric
            value: Metric value
            labels: Optional metric labels
        """
        metric_data = {
            'metric': metric_name,
            'value': value,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        if labels:
            metric_data['labels'] = labels

        self.logger.info(json.dumps(metric_data))

    def log_counter(self, name: str, increment: int = 1, labels: Dict[str, str] = None):
        """Log a counter increment"""
        self.log_metric(f"{name}_total", increment, labels)

    def log_gauge(self, name: str, value: float, labels: Dict[str, str] = None):
        """Log a gauge value"""
        self.log_metric(name, value, labels)
