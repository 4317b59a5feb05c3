"""Octopus Energy API data model module.

This module handles:
- Immutable dataclasses for the account topology (properties, meter points,
  agreements, meters) and for consumption and rate records
- Parsing raw JSON payloads from the REST API into those dataclasses
- Extracting the product code embedded in a tariff code

Account payload (simplified):
- properties[]: address_line_1, electricity_meter_points[], gas_meter_points[]
- electricity_meter_points[]: mpan, agreements[] (chronological), meters[]
- gas_meter_points[]: mprn, agreements[], meters[]
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

# Product codes look like VAR-22-11-01 or AGILE-FLEX-22-11-25 and start on a
# segment boundary, so the register in E-1R-... is never part of the match
PRODUCT_CODE_PATTERN = re.compile(r"(?<![A-Za-z0-9])[A-Z]+(?:-[A-Z]+)?-\d{2}-\d{2}-\d{2}")

T = TypeVar("T")


class OctopusParseError(Exception):
    """Exception raised when an API payload cannot be parsed."""
    pass


class MeterType(Enum):
    """Kind of supply a meter point measures.

    The value doubles as the ``meter_type`` tag written to InfluxDB.
    """
    ELECTRICITY = "Electricity"
    GAS = "Gas"

    def __str__(self) -> str:
        return self.value

    @property
    def meter_points_path(self) -> str:
        """REST path segment for meter points of this type."""
        return f"{self.value.lower()}-meter-points"

    @property
    def tariffs_path(self) -> str:
        """REST path segment for product tariffs of this type."""
        return f"{self.value.lower()}-tariffs"


@dataclass(frozen=True)
class Meter:
    serial_number: str


@dataclass(frozen=True)
class Agreement:
    """A tariff agreement on a meter point.

    Attributes:
        tariff_code: Provider tariff code, e.g. E-1R-VAR-22-11-01-C
        valid_from: Start of the agreement
        valid_to: End of the agreement, None if open-ended
    """
    tariff_code: str
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None


@dataclass(frozen=True)
class ElectricityMeterPoint:
    """An electricity supply point identified by its MPAN.

    Agreements are kept in the order the API returns them (chronological),
    so the last one is the current agreement.
    """
    mpan: str
    agreements: List[Agreement] = field(default_factory=list)
    meters: List[Meter] = field(default_factory=list)
    is_export: bool = False

    @property
    def current_agreement(self) -> Optional[Agreement]:
        return self.agreements[-1] if self.agreements else None


@dataclass(frozen=True)
class GasMeterPoint:
    mprn: str
    agreements: List[Agreement] = field(default_factory=list)
    meters: List[Meter] = field(default_factory=list)


@dataclass(frozen=True)
class Property:
    id: Optional[int]
    address_line_1: str
    electricity_meter_points: List[ElectricityMeterPoint] = field(default_factory=list)
    gas_meter_points: List[GasMeterPoint] = field(default_factory=list)


@dataclass(frozen=True)
class Account:
    number: str
    properties: List[Property] = field(default_factory=list)


@dataclass(frozen=True)
class ConsumptionRecord:
    """A single consumption interval.

    Attributes:
        interval_start: Start of the interval (UTC aware)
        consumption: Quantity consumed (kWh for electricity, kWh or m³ for gas)
        interval_end: End of the interval, if reported
    """
    interval_start: datetime
    consumption: float
    interval_end: Optional[datetime] = None


@dataclass(frozen=True)
class RateRecord:
    """A standard unit rate, in pence per kWh.

    Attributes:
        valid_from: Time the rate starts to apply
        value_inc_vat: Rate including VAT
        value_exc_vat: Rate excluding VAT
        valid_to: Time the rate stops applying, None if open-ended
    """
    valid_from: datetime
    value_inc_vat: float
    value_exc_vat: Optional[float] = None
    valid_to: Optional[datetime] = None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated collection.

    Attributes:
        count: Total number of records the API reports for the collection
        results: Records on this page
        next: URL of the next page, None on the last page
    """
    count: int
    results: List[T] = field(default_factory=list)
    next: Optional[str] = None

    @property
    def is_truncated(self) -> bool:
        return self.count > len(self.results)


def extract_product_code(tariff_code: str) -> str:
    """Extract the product code embedded in a tariff code.

    Args:
        tariff_code: Tariff code such as E-1R-VAR-22-11-01-C

    Returns:
        First substring matching PRODUCT_CODE_PATTERN, or an empty string
        if the tariff code contains none

    Example:
        >>> extract_product_code("E-1R-VAR-22-11-01-C")
        'VAR-22-11-01'
        >>> extract_product_code("unknown")
        ''
    """
    match = PRODUCT_CODE_PATTERN.search(tariff_code or "")
    return match.group(0) if match else ""


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp from the API.

    A trailing ``Z`` is accepted as UTC and naive timestamps are assumed
    to be UTC.

    Raises:
        OctopusParseError: If the value is not a valid timestamp
    """
    if not isinstance(value, str) or not value:
        raise OctopusParseError(f"Invalid timestamp: {value!r}")

    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        raise OctopusParseError(f"Invalid timestamp: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_timestamp(value: Any) -> Optional[datetime]:
    return parse_timestamp(value) if value else None


def _number(data: dict, key: str) -> float:
    try:
        return float(data[key])
    except KeyError:
        raise OctopusParseError(f"Missing field: {key}")
    except (TypeError, ValueError):
        raise OctopusParseError(f"Invalid number for {key}: {data[key]!r}")


def _required(data: dict, key: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError):
        raise OctopusParseError(f"Missing field: {key}")


def _parse_agreements(items: list) -> List[Agreement]:
    return [
        Agreement(
            tariff_code=_required(item, "tariff_code"),
            valid_from=_optional_timestamp(item.get("valid_from")),
            valid_to=_optional_timestamp(item.get("valid_to")),
        )
        for item in items or []
    ]


def _parse_meters(items: list) -> List[Meter]:
    return [Meter(serial_number=_required(item, "serial_number")) for item in items or []]


def parse_account(payload: dict) -> Account:
    """Parse an account payload into an Account tree.

    Args:
        payload: JSON body of GET /accounts/{account_id}/

    Returns:
        Account with properties and meter points in API order

    Raises:
        OctopusParseError: If a required field is missing
    """
    if not isinstance(payload, dict):
        raise OctopusParseError(f"Expected account object, got {type(payload).__name__}")

    properties = []
    for prop in payload.get("properties") or []:
        if not isinstance(prop, dict):
            raise OctopusParseError(f"Expected property object, got {type(prop).__name__}")

        electricity_points = [
            ElectricityMeterPoint(
                mpan=_required(point, "mpan"),
                agreements=_parse_agreements(point.get("agreements")),
                meters=_parse_meters(point.get("meters")),
                is_export=bool(point.get("is_export", False)),
            )
            for point in prop.get("electricity_meter_points") or []
        ]
        gas_points = [
            GasMeterPoint(
                mprn=_required(point, "mprn"),
                agreements=_parse_agreements(point.get("agreements")),
                meters=_parse_meters(point.get("meters")),
            )
            for point in prop.get("gas_meter_points") or []
        ]
        properties.append(Property(
            id=prop.get("id"),
            address_line_1=prop.get("address_line_1") or "",
            electricity_meter_points=electricity_points,
            gas_meter_points=gas_points,
        ))

    return Account(number=payload.get("number") or "", properties=properties)


def parse_consumption(item: dict) -> ConsumptionRecord:
    return ConsumptionRecord(
        interval_start=parse_timestamp(_required(item, "interval_start")),
        consumption=_number(item, "consumption"),
        interval_end=_optional_timestamp(item.get("interval_end")),
    )


def parse_rate(item: dict) -> RateRecord:
    return RateRecord(
        valid_from=parse_timestamp(_required(item, "valid_from")),
        value_inc_vat=_number(item, "value_inc_vat"),
        value_exc_vat=_number(item, "value_exc_vat") if item.get("value_exc_vat") is not None else None,
        valid_to=_optional_timestamp(item.get("valid_to")),
    )


def parse_page(payload: dict, parse_item: Callable[[dict], T]) -> Page[T]:
    """Parse a paginated collection payload.

    Args:
        payload: JSON body with count, next and results keys
        parse_item: Parser applied to each entry of results

    Returns:
        Page with parsed results; count falls back to len(results)

    Raises:
        OctopusParseError: If results is missing or an item is malformed
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise OctopusParseError("Paginated response has no results list")

    results = [parse_item(item) for item in payload["results"]]
    count = payload.get("count")
    try:
        count = int(count) if count is not None else len(results)
    except (TypeError, ValueError):
        raise OctopusParseError(f"Invalid count: {count!r}")

    return Page(
        count=count,
        results=results,
        next=payload.get("next"),
    )
