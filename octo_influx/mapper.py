"""Record to time-series point mapping module.

This module handles:
- Mapping consumption records to points tagged by meter type, MPxN and serial
- Mapping standard unit rate records to points tagged by product and tariff code
- Converting points to influxdb_client Points for writing

Every record maps to exactly one point, stamped with the record's own
timestamp rather than the time of the import.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict

from influxdb_client import Point, WritePrecision

from octo_influx.models import ConsumptionRecord, MeterType, RateRecord

CONSUMPTION_MEASUREMENT = "consumption"
RATES_MEASUREMENT = "rates"


@dataclass(frozen=True)
class TimeSeriesPoint:
    """A single InfluxDB point.

    Attributes:
        measurement: Measurement name
        time: Timestamp of the point (timezone aware)
        tags: Indexed tag values
        fields: Measured values
    """
    measurement: str
    time: datetime
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, float] = field(default_factory=dict)

    def to_influx_point(self) -> Point:
        point = Point(self.measurement)
        for key, value in self.tags.items():
            point = point.tag(key, value)
        for key, value in self.fields.items():
            point = point.field(key, value)
        return point.time(self.time, WritePrecision.NS)


def map_consumption(
    meter_type: MeterType,
    mpxn: str,
    serial: str,
    record: ConsumptionRecord,
    measurement: str = CONSUMPTION_MEASUREMENT,
) -> TimeSeriesPoint:
    """Map a consumption record to a point.

    Args:
        meter_type: Electricity or gas
        mpxn: MPAN or MPRN of the meter point
        serial: Meter serial number
        record: Consumption record to map
        measurement: Measurement name (default: consumption)

    Returns:
        Point at the start of the interval with a single consumption field
    """
    return TimeSeriesPoint(
        measurement=measurement,
        time=record.interval_start,
        tags={
            "meter_type": str(meter_type),
            "mpxn": mpxn,
            "serial": serial,
        },
        fields={"consumption": float(record.consumption)},
    )


def map_rate(
    product_code: str,
    tariff_code: str,
    record: RateRecord,
    measurement: str = RATES_MEASUREMENT,
) -> TimeSeriesPoint:
    """Map a standard unit rate record to a point.

    The rate field carries the VAT-inclusive value.
    """
    return TimeSeriesPoint(
        measurement=measurement,
        time=record.valid_from,
        tags={
            "product_code": product_code,
            "tariff_code": tariff_code,
        },
        fields={"rate": float(record.value_inc_vat)},
    )
