"""InfluxDB exporter module.

This module handles:
- Connecting to InfluxDB and checking its health
- Writing batches of consumption and rate points with their own timestamps
- Turning any rejected batch into an InfluxDBWriteError
"""

import logging
from typing import List, Optional, Sequence

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS

from octo_influx.mapper import TimeSeriesPoint

# Configure module logger
logger = logging.getLogger(__name__)


class InfluxDBWriteError(Exception):
    """Exception raised when InfluxDB rejects a batch of points."""
    pass


class InfluxDBExporter:
    """InfluxDB exporter for Octopus Energy data.

    Measurements:
    - consumption: Per-interval readings, tagged meter_type, mpxn, serial
    - rates: Standard unit rates (p/kWh inc. VAT), tagged product_code, tariff_code

    Attributes:
        url: InfluxDB server URL
        token: InfluxDB API token
        org: InfluxDB organization
        bucket: InfluxDB bucket name
    """

    def __init__(
        self,
        url: str = "http://localhost:8086",
        token: str = "",
        org: str = "octopus",
        bucket: str = "energy",
    ):
        """Initialize the InfluxDB exporter.

        Args:
            url: InfluxDB server URL
            token: InfluxDB API token (required for writes)
            org: InfluxDB organization name
            bucket: InfluxDB bucket name
        """
        self.url = url
        self.token = token
        self.org = org
        self.bucket = bucket
        self._client: Optional[InfluxDBClient] = None
        self._write_api = None

    def connect(self) -> bool:
        """Open the client and check the server is healthy.

        Returns:
            True if InfluxDB reports healthy, False otherwise
        """
        try:
            self._client = InfluxDBClient(url=self.url, token=self.token, org=self.org)
            # Writes block until InfluxDB acknowledges the batch
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
            health = self._client.health()
        except Exception as e:
            logger.error(f"Failed to connect to InfluxDB at {self.url}: {e}")
            self.close()
            return False

        if health.status != "pass":
            logger.error(f"InfluxDB health check failed: {health.message}")
            self.close()
            return False

        logger.info(f"Connected to InfluxDB at {self.url}, bucket {self.bucket}")
        return True

    def close(self) -> None:
        """Close the InfluxDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._write_api = None
            logger.info("InfluxDB connection closed")

    def write_points(self, points: Sequence[TimeSeriesPoint]) -> int:
        """Write a batch of points in a single request.

        Args:
            points: Points to write, in order

        Returns:
            Number of points written

        Raises:
            RuntimeError: If not connected to InfluxDB
            InfluxDBWriteError: If InfluxDB rejects the batch
        """
        if not self._write_api:
            raise RuntimeError("Not connected to InfluxDB. Call connect() first.")

        if not points:
            logger.warning("No points to write")
            return 0

        records: List[Point] = [point.to_influx_point() for point in points]
        measurements = ", ".join(sorted({point.measurement for point in points}))

        try:
            self._write_api.write(bucket=self.bucket, org=self.org, record=records)
        except Exception as e:
            logger.error(f"Failed to write {measurements} to InfluxDB: {e}")
            raise InfluxDBWriteError(f"Write of {len(records)} {measurements} points failed: {e}")

        logger.info(f"Wrote {len(records)} {measurements} points to InfluxDB")
        return len(records)
