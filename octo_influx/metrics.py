"""Prometheus metrics module.

This module handles:
- Defining operational gauges for the import job
- Exposing them over HTTP when running on a schedule
"""

import logging
import time
from typing import Dict, Optional

from prometheus_client import Gauge, start_http_server, REGISTRY, CollectorRegistry

# Configure module logger
logger = logging.getLogger(__name__)


class ImportMetrics:
    """Prometheus metrics for the Octopus import job.

    Exposes the following metrics:
    - octo_import_success: Whether the last import succeeded (1=success, 0=failure)
    - octo_import_timestamp: Unix timestamp of the last import
    - octo_import_duration_seconds: Duration of the last import
    - octo_points_written: Points written by the last successful import, per measurement

    Attributes:
        port: HTTP server port (default 9120)
    """

    def __init__(self, port: int = 9120, registry: Optional[CollectorRegistry] = None):
        """Initialize the metrics.

        Args:
            port: Port to run the HTTP server on
            registry: Optional custom registry for testing. If None, uses default REGISTRY.
        """
        self.port = port
        self._registry = registry if registry is not None else REGISTRY
        self._server_started = False

        self._import_success = Gauge(
            'octo_import_success',
            'Whether the last import succeeded (1=success, 0=failure)',
            registry=self._registry
        )

        self._import_timestamp = Gauge(
            'octo_import_timestamp',
            'Unix timestamp of the last import',
            registry=self._registry
        )

        self._import_duration = Gauge(
            'octo_import_duration_seconds',
            'Duration of the last import in seconds',
            registry=self._registry
        )

        self._points_written = Gauge(
            'octo_points_written',
            'Points written to InfluxDB by the last successful import',
            ['measurement'],
            registry=self._registry
        )

    def record_import(self, success: bool, duration: float,
                      points_written: Optional[Dict[str, int]] = None) -> None:
        """Update metrics after an import attempt.

        Args:
            success: Whether the import succeeded
            duration: How long the import took in seconds
            points_written: Points written per measurement, only for successful imports
        """
        self._import_success.set(1 if success else 0)
        self._import_timestamp.set(time.time())
        self._import_duration.set(duration)

        for measurement, count in (points_written or {}).items():
            self._points_written.labels(measurement=measurement).set(count)

    def start(self) -> None:
        """Start the HTTP server exposing metrics at /metrics."""
        if self._server_started:
            logger.warning("Prometheus server already started")
            return

        logger.info(f"Starting Prometheus HTTP server on port {self.port}")
        start_http_server(self.port, registry=self._registry)
        self._server_started = True
