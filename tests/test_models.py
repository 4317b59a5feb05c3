"""Tests for the API data model and payload parsers."""

from datetime import datetime, timezone

import pytest

from octo_influx.models import (
    MeterType,
    OctopusParseError,
    extract_product_code,
    parse_account,
    parse_consumption,
    parse_page,
    parse_rate,
    parse_timestamp,
)

ACCOUNT_PAYLOAD = {
    "number": "A-1234ABCD",
    "properties": [
        {
            "id": 1001,
            "address_line_1": "1 Test Street",
            "electricity_meter_points": [
                {
                    "mpan": "1234567890",
                    "is_export": False,
                    "meters": [{"serial_number": "S1", "registers": []}],
                    "agreements": [
                        {
                            "tariff_code": "E-1R-VAR-21-09-29-C",
                            "valid_from": "2021-10-01T00:00:00+01:00",
                            "valid_to": "2022-11-01T00:00:00Z",
                        },
                        {
                            "tariff_code": "E-1R-VAR-22-11-01-C",
                            "valid_from": "2022-11-01T00:00:00Z",
                            "valid_to": None,
                        },
                    ],
                }
            ],
            "gas_meter_points": [
                {
                    "mprn": "9876543",
                    "meters": [{"serial_number": "G1"}, {"serial_number": "G2"}],
                    "agreements": [],
                }
            ],
        }
    ],
}


@pytest.mark.parametrize("tariff_code, expected", [
    ("E-1R-VAR-22-11-01", "VAR-22-11-01"),
    ("E-1R-VAR-22-11-01-C", "VAR-22-11-01"),
    ("E-1R-AGILE-FLEX-22-11-25-C", "AGILE-FLEX-22-11-25"),
    ("G-1R-VAR-22-11-01-C", "VAR-22-11-01"),
    ("E-1R-VAR-22-11-01-C-VAR-23-12-01", "VAR-22-11-01"),
    ("AB-CD-EF-22-11-01", "CD-EF-22-11-01"),
])
def test_extract_product_code(tariff_code, expected):
    assert extract_product_code(tariff_code) == expected


@pytest.mark.parametrize("tariff_code", ["", "unknown", "e-1r-var-22-11-01", "E-1R-VAR-2-11-01"])
def test_extract_product_code_no_match(tariff_code):
    assert extract_product_code(tariff_code) == ""


def test_meter_type_strings():
    assert str(MeterType.ELECTRICITY) == "Electricity"
    assert str(MeterType.GAS) == "Gas"
    assert MeterType.ELECTRICITY.meter_points_path == "electricity-meter-points"
    assert MeterType.GAS.tariffs_path == "gas-tariffs"


def test_parse_timestamp_variants():
    expected = datetime(2023, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2023-01-01T00:00:00Z") == expected
    assert parse_timestamp("2023-01-01T00:00:00+00:00") == expected
    assert parse_timestamp("2023-01-01T00:00:00") == expected
    assert parse_timestamp("2023-01-01T01:00:00+01:00") == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
def test_parse_timestamp_invalid(value):
    with pytest.raises(OctopusParseError, match="Invalid timestamp"):
        parse_timestamp(value)


def test_parse_account_topology():
    account = parse_account(ACCOUNT_PAYLOAD)

    assert account.number == "A-1234ABCD"
    assert len(account.properties) == 1

    prop = account.properties[0]
    assert prop.id == 1001
    assert prop.address_line_1 == "1 Test Street"

    point = prop.electricity_meter_points[0]
    assert point.mpan == "1234567890"
    assert [m.serial_number for m in point.meters] == ["S1"]
    assert [a.tariff_code for a in point.agreements] == ["E-1R-VAR-21-09-29-C", "E-1R-VAR-22-11-01-C"]
    assert point.current_agreement.tariff_code == "E-1R-VAR-22-11-01-C"
    assert point.current_agreement.valid_to is None
    assert point.agreements[0].valid_from == datetime(2021, 9, 30, 23, 0, tzinfo=timezone.utc)

    gas = prop.gas_meter_points[0]
    assert gas.mprn == "9876543"
    assert [m.serial_number for m in gas.meters] == ["G1", "G2"]


def test_parse_account_without_meter_points():
    account = parse_account({"number": "A-1", "properties": [{"address_line_1": "Flat 2"}]})
    prop = account.properties[0]
    assert prop.electricity_meter_points == []
    assert prop.gas_meter_points == []


def test_parse_account_missing_mpan():
    payload = {"properties": [{"electricity_meter_points": [{"meters": []}]}]}
    with pytest.raises(OctopusParseError, match="mpan"):
        parse_account(payload)


def test_parse_account_not_an_object():
    with pytest.raises(OctopusParseError):
        parse_account(["not", "an", "account"])


def test_current_agreement_none_without_agreements():
    account = parse_account({"properties": [{"electricity_meter_points": [{"mpan": "1"}]}]})
    assert account.properties[0].electricity_meter_points[0].current_agreement is None


def test_parse_consumption_page():
    payload = {
        "count": 3,
        "next": "https://api.octopus.energy/v1/next",
        "previous": None,
        "results": [
            {"consumption": 12.5, "interval_start": "2023-01-01T00:00:00Z",
             "interval_end": "2023-01-01T00:30:00Z"},
            {"consumption": 0, "interval_start": "2023-01-01T00:30:00Z",
             "interval_end": "2023-01-01T01:00:00Z"},
        ],
    }

    page = parse_page(payload, parse_consumption)

    assert page.count == 3
    assert page.next == "https://api.octopus.energy/v1/next"
    assert page.is_truncated
    assert page.results[0].consumption == 12.5
    assert page.results[0].interval_start == datetime(2023, 1, 1, tzinfo=timezone.utc)
    assert page.results[1].consumption == 0.0


def test_parse_rate_page_count_defaults_to_results():
    payload = {
        "results": [
            {"value_exc_vat": 32.0, "value_inc_vat": 33.6,
             "valid_from": "2023-01-01T00:00:00Z", "valid_to": None},
        ],
    }

    page = parse_page(payload, parse_rate)

    assert page.count == 1
    assert not page.is_truncated
    rate = page.results[0]
    assert rate.value_inc_vat == 33.6
    assert rate.value_exc_vat == 32.0
    assert rate.valid_to is None


def test_parse_page_missing_results():
    with pytest.raises(OctopusParseError, match="no results"):
        parse_page({"count": 0}, parse_rate)


def test_parse_consumption_invalid_number():
    with pytest.raises(OctopusParseError, match="consumption"):
        parse_consumption({"consumption": "lots", "interval_start": "2023-01-01T00:00:00Z"})


def test_parse_page_invalid_count():
    with pytest.raises(OctopusParseError, match="Invalid count"):
        parse_page({"count": "n/a", "results": []}, parse_consumption)


def test_parse_account_property_not_an_object():
    with pytest.raises(OctopusParseError, match="property object"):
        parse_account({"number": "A-1", "properties": ["oops"]})
