"""Octopus Energy API client module.

This module handles:
- Authentication with the Octopus Energy Kraken GraphQL API
- Fetching the account topology (properties, meter points, meters)
- Fetching single pages of consumption readings and standard unit rates
  from the REST API
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from octo_influx.models import (
    Account,
    ConsumptionRecord,
    MeterType,
    OctopusParseError,
    Page,
    RateRecord,
    parse_account,
    parse_consumption,
    parse_page,
    parse_rate,
)

# Configure module logger
logger = logging.getLogger(__name__)

OBTAIN_TOKEN_MUTATION = """
mutation ObtainKrakenToken($input: ObtainJSONWebTokenInput!) {
  obtainKrakenToken(input: $input) {
    token
  }
}
"""


class OctopusError(Exception):
    """Base exception for Octopus API errors."""
    pass


class OctopusAuthError(OctopusError):
    """Exception raised when authentication fails."""
    pass


class OctopusAPIError(OctopusError):
    """Exception raised when an API request fails or returns bad data."""
    pass


@dataclass(frozen=True)
class AuthToken:
    """Kraken token returned by a successful login."""
    token: str

    def __repr__(self) -> str:
        return "AuthToken(<redacted>)"


class OctopusClient:
    """Client for the Octopus Energy customer API.

    Every call is a single blocking request. Pagination is never followed:
    callers get one page and the total count the API reports.

    Attributes:
        base_url: API root, without trailing slash
        timeout: Request timeout in seconds, None for no timeout
    """

    BASE_URL = "https://api.octopus.energy/v1"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: Optional[float] = 30,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API root URL
            timeout: Request timeout in seconds
            session: Optional pre-configured session (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "octo-influx",
        })

    def close(self) -> None:
        self.session.close()

    def _get(self, token: AuthToken, path: str, params: Optional[dict] = None) -> Any:
        """GET a REST resource and return its decoded JSON body.

        Raises:
            OctopusAPIError: On transport errors, non-success status or a
                body that is not JSON
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url} params={params}")

        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Authorization": token.token},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OctopusAPIError(f"Request to {path} failed: {e}")

        if not response.ok:
            raise OctopusAPIError(
                f"Request to {path} failed with status {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise OctopusAPIError(f"Invalid JSON from {path}: {e}")

    def authenticate(self, email: str, password: str) -> AuthToken:
        """Obtain a Kraken token for the account holder.

        Args:
            email: Account email address
            password: Account password

        Returns:
            Token to pass to the other calls

        Raises:
            OctopusAuthError: If the credentials are rejected or the request fails
        """
        logger.info(f"Authenticating as {email}")

        payload = {
            "query": OBTAIN_TOKEN_MUTATION,
            "variables": {"input": {"email": email, "password": password}},
        }

        try:
            response = self.session.post(
                f"{self.base_url}/graphql/",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            raise OctopusAuthError(f"Login failed: {e}")

        if not isinstance(result, dict):
            raise OctopusAuthError("Login failed - unexpected response format")

        errors = result.get("errors")
        if errors:
            messages = "; ".join(error.get("message", "unknown error") for error in errors)
            raise OctopusAuthError(f"Login rejected: {messages}")

        token = ((result.get("data") or {}).get("obtainKrakenToken") or {}).get("token")
        if not token:
            raise OctopusAuthError("Login failed - no token in response")

        logger.info("Authentication successful")
        return AuthToken(token)

    def get_account(self, token: AuthToken, account_id: str) -> Account:
        """Fetch the account with all its properties and meter points.

        Raises:
            OctopusAPIError: If the request fails or the payload is malformed
        """
        payload = self._get(token, f"/accounts/{account_id}/")
        try:
            account = parse_account(payload)
        except OctopusParseError as e:
            raise OctopusAPIError(f"Invalid account response: {e}")

        logger.info(f"Fetched account {account.number or account_id} "
                    f"with {len(account.properties)} properties")
        return account

    def get_consumption(
        self,
        token: AuthToken,
        meter_type: MeterType,
        mpxn: str,
        serial: str,
        page: int = 1,
        page_size: int = 100,
        group_by: Optional[str] = None,
    ) -> Page[ConsumptionRecord]:
        """Fetch one page of consumption readings for a meter.

        Args:
            token: Token from authenticate()
            meter_type: Electricity or gas
            mpxn: MPAN or MPRN of the meter point
            serial: Meter serial number
            page: 1-based page number
            page_size: Number of readings per page
            group_by: Optional aggregation (hour, day, week, month, quarter)

        Returns:
            Page of readings, newest first as ordered by the API

        Raises:
            OctopusAPIError: If the request fails or the payload is malformed
        """
        params = {"page": page, "page_size": page_size}
        if group_by:
            params["group_by"] = group_by

        path = f"/{meter_type.meter_points_path}/{mpxn}/meters/{serial}/consumption/"
        payload = self._get(token, path, params)
        try:
            return parse_page(payload, parse_consumption)
        except OctopusParseError as e:
            raise OctopusAPIError(f"Invalid consumption response for {mpxn}/{serial}: {e}")

    def get_standard_unit_rates(
        self,
        token: AuthToken,
        meter_type: MeterType,
        product_code: str,
        tariff_code: str,
        page: int = 1,
        page_size: int = 100,
    ) -> Page[RateRecord]:
        """Fetch one page of standard unit rates for a tariff.

        Raises:
            OctopusAPIError: If the request fails or the payload is malformed
        """
        params = {"page": page, "page_size": page_size}
        path = (f"/products/{product_code}/{meter_type.tariffs_path}/"
                f"{tariff_code}/standard-unit-rates/")
        payload = self._get(token, path, params)
        try:
            return parse_page(payload, parse_rate)
        except OctopusParseError as e:
            raise OctopusAPIError(f"Invalid unit rates response for {tariff_code}: {e}")


def main():
    """Test the client with provided credentials."""
    import os

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    from dotenv import load_dotenv
    load_dotenv()

    email = os.getenv("OCTOPUS_EMAIL", "your_email@example.com")
    password = os.getenv("OCTOPUS_PASSWORD", "YOUR_PASSWORD")
    account_id = os.getenv("OCTOPUS_ACCOUNT_ID", "A-00000000")

    print(f"Testing Octopus client for account: {account_id}")
    print("=" * 60)

    client = OctopusClient()

    try:
        print("\n1. Testing authentication...")
        token = client.authenticate(email, password)
        print("   Authentication successful!")

        print("\n2. Testing account fetch...")
        account = client.get_account(token, account_id)
        for prop in account.properties:
            print(f"   Property: {prop.address_line_1}")
            for point in prop.electricity_meter_points:
                agreement = point.current_agreement
                print(f"     MPAN {point.mpan}, tariff "
                      f"{agreement.tariff_code if agreement else 'none'}")
                for meter in point.meters:
                    consumption = client.get_consumption(
                        token, MeterType.ELECTRICITY, point.mpan, meter.serial_number, page_size=5
                    )
                    print(f"       Meter {meter.serial_number}: "
                          f"{len(consumption.results)}/{consumption.count} readings")
            for point in prop.gas_meter_points:
                print(f"     MPRN {point.mprn}, {len(point.meters)} meters")

        print("\n" + "=" * 60)
        print("All checks passed!")

    except OctopusAuthError as e:
        print(f"\n   Authentication FAILED: {e}")
        return False
    except OctopusAPIError as e:
        print(f"\n   API request FAILED: {e}")
        return False
    finally:
        client.close()

    return True


if __name__ == "__main__":
    import sys
    success = main()
    sys.exit(0 if success else 1)
