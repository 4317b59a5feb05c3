"""Import orchestration module.

This module handles:
- Walking the account topology property by property
- Importing one page of consumption readings per electricity and gas meter
- Importing one page of standard unit rates per property, for the tariff of
  the last electricity meter point seen on that property

The run is strictly sequential and stops at the first error: a failed
request or a rejected write propagates out of run() and nothing after it is
fetched or written.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from octo_influx.influxdb_exporter import InfluxDBExporter
from octo_influx.mapper import (
    CONSUMPTION_MEASUREMENT,
    RATES_MEASUREMENT,
    map_consumption,
    map_rate,
)
from octo_influx.models import MeterType, Property, extract_product_code
from octo_influx.octopus_client import AuthToken, OctopusClient

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """Counts collected over one import run.

    Attributes:
        properties: Number of properties processed
        meters: Number of meters whose consumption was imported
        points_written: Points written per measurement
    """
    properties: int = 0
    meters: int = 0
    points_written: Dict[str, int] = field(default_factory=dict)

    def add_points(self, measurement: str, count: int) -> None:
        self.points_written[measurement] = self.points_written.get(measurement, 0) + count


class OctopusImporter:
    """Imports consumption and unit rates for one account into InfluxDB.

    Attributes:
        client: Octopus API client
        exporter: Connected InfluxDB exporter
        num_readings: Page size for consumption requests
        unit_rates_num_readings: Page size for unit rate requests
    """

    def __init__(
        self,
        client: OctopusClient,
        exporter: InfluxDBExporter,
        email: str,
        password: str,
        account_id: str,
        num_readings: int = 1000,
        unit_rates_num_readings: int = 100,
    ):
        self.client = client
        self.exporter = exporter
        self.email = email
        self.password = password
        self.account_id = account_id
        self.num_readings = num_readings
        self.unit_rates_num_readings = unit_rates_num_readings

    def run(self) -> ImportSummary:
        """Authenticate, fetch the account and import every property.

        Returns:
            Summary of what was written

        Raises:
            OctopusAuthError: If login fails
            OctopusAPIError: If any API request fails
            InfluxDBWriteError: If any batch is rejected
        """
        summary = ImportSummary()

        token = self.client.authenticate(self.email, self.password)
        account = self.client.get_account(token, self.account_id)

        for prop in account.properties:
            self.import_property(token, prop, summary)
            summary.properties += 1

        logger.info(f"Import finished: {summary.properties} properties, "
                    f"{summary.meters} meters, points written {summary.points_written}")
        return summary

    def import_property(self, token: AuthToken, prop: Property, summary: ImportSummary) -> None:
        """Import consumption for every meter of a property, then its unit rates."""
        logger.info(f"Property {prop.address_line_1}")

        # Last electricity meter point with an agreement wins
        tariff_code: Optional[str] = None

        for meter_point in prop.electricity_meter_points:
            logger.info(f"Electricity MPAN {meter_point.mpan}")
            agreement = meter_point.current_agreement
            if agreement:
                logger.info(f"Latest agreement {agreement}")
                tariff_code = agreement.tariff_code
            for meter in meter_point.meters:
                logger.info(f"Meter serial {meter.serial_number}")
                self.import_consumption_readings(
                    token, MeterType.ELECTRICITY, meter_point.mpan, meter.serial_number, summary
                )

        for meter_point in prop.gas_meter_points:
            logger.info(f"Gas MPRN {meter_point.mprn}")
            for meter in meter_point.meters:
                logger.info(f"Meter serial {meter.serial_number}")
                self.import_consumption_readings(
                    token, MeterType.GAS, meter_point.mprn, meter.serial_number, summary
                )

        if tariff_code is None:
            logger.warning(f"No electricity tariff for property {prop.address_line_1}, "
                           "skipping unit rates")
            return

        logger.info(f"Tariff code = {tariff_code}")
        product_code = extract_product_code(tariff_code)
        if not product_code:
            logger.warning(f"No product code found in tariff code {tariff_code}")
        logger.info(f"Extracted product code : {product_code}")

        self.import_unit_rates(token, product_code, tariff_code, summary)

    def import_consumption_readings(
        self,
        token: AuthToken,
        meter_type: MeterType,
        mpxn: str,
        serial: str,
        summary: ImportSummary,
    ) -> int:
        """Import the first page of consumption readings for one meter.

        Returns:
            Number of points written
        """
        page = self.client.get_consumption(
            token, meter_type, mpxn, serial, page=1, page_size=self.num_readings
        )
        logger.info(f"{meter_type} consumption: {len(page.results)}/{page.count} records")
        if page.is_truncated:
            logger.warning(f"Only the latest {len(page.results)} of {page.count} "
                           f"readings imported for {mpxn}/{serial}")

        points = [
            map_consumption(meter_type, mpxn, serial, reading, CONSUMPTION_MEASUREMENT)
            for reading in page.results
        ]
        written = self.exporter.write_points(points)

        summary.meters += 1
        summary.add_points(CONSUMPTION_MEASUREMENT, written)
        return written

    def import_unit_rates(
        self,
        token: AuthToken,
        product_code: str,
        tariff_code: str,
        summary: ImportSummary,
    ) -> int:
        """Import the first page of electricity standard unit rates for a tariff.

        Returns:
            Number of points written
        """
        page = self.client.get_standard_unit_rates(
            token, MeterType.ELECTRICITY, product_code, tariff_code,
            page=1, page_size=self.unit_rates_num_readings,
        )
        logger.info(f"{MeterType.ELECTRICITY} rates: {len(page.results)}/{page.count} records")

        points = [
            map_rate(product_code, tariff_code, rate, RATES_MEASUREMENT)
            for rate in page.results
        ]
        written = self.exporter.write_points(points)

        summary.add_points(RATES_MEASUREMENT, written)
        return written
