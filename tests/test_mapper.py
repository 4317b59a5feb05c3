"""Tests for record to point mapping."""

from datetime import datetime, timedelta, timezone

from octo_influx.mapper import TimeSeriesPoint, map_consumption, map_rate
from octo_influx.models import ConsumptionRecord, MeterType, RateRecord

START = datetime(2023, 1, 1, tzinfo=timezone.utc)


def test_map_consumption_electricity():
    record = ConsumptionRecord(interval_start=START, consumption=12.5)

    point = map_consumption(MeterType.ELECTRICITY, "1234567890", "S1", record)

    assert point.measurement == "consumption"
    assert point.time == START
    assert point.tags == {"meter_type": "Electricity", "mpxn": "1234567890", "serial": "S1"}
    assert point.fields == {"consumption": 12.5}


def test_map_consumption_gas_widens_to_float():
    record = ConsumptionRecord(interval_start=START, consumption=3)

    point = map_consumption(MeterType.GAS, "9876543", "G1", record, "gas_usage")

    assert point.measurement == "gas_usage"
    assert point.tags["meter_type"] == "Gas"
    assert isinstance(point.fields["consumption"], float)
    assert point.fields["consumption"] == 3.0


def test_map_consumption_distinct_identities():
    records = [ConsumptionRecord(START + timedelta(minutes=30 * i), 0.1) for i in range(3)]
    points = [
        map_consumption(meter_type, "1234567890", serial, record)
        for meter_type in MeterType
        for serial in ("S1", "S2")
        for record in records
    ]

    identities = {(p.time, tuple(sorted(p.tags.items()))) for p in points}
    assert len(identities) == len(points)


def test_map_consumption_keeps_value_exactly():
    for value in (0.0, 0.063, 1e-9, 123456.789):
        point = map_consumption(MeterType.ELECTRICITY, "1", "S", ConsumptionRecord(START, value))
        assert point.fields["consumption"] == value


def test_map_rate():
    record = RateRecord(valid_from=START, value_inc_vat=33.6, value_exc_vat=32.0)

    point = map_rate("VAR-22-11-01", "E-1R-VAR-22-11-01-C", record)

    assert point.measurement == "rates"
    assert point.time == START
    assert point.tags == {"product_code": "VAR-22-11-01", "tariff_code": "E-1R-VAR-22-11-01-C"}
    assert point.fields == {"rate": 33.6}


def test_to_influx_point_line_protocol():
    point = TimeSeriesPoint(
        measurement="consumption",
        time=START,
        tags={"serial": "S1", "meter_type": "Electricity", "mpxn": "1234567890"},
        fields={"consumption": 12.5},
    )

    line = point.to_influx_point().to_line_protocol()

    assert line.startswith("consumption,meter_type=Electricity,mpxn=1234567890,serial=S1 ")
    assert "consumption=12.5" in line
    assert line.endswith(" 1672531200000000000")
