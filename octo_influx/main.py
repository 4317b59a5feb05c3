"""Main entry point for octo-influx.

This module handles:
- Loading configuration from environment variables (and a .env file)
- Running a single import pass and exiting, or scheduling a daily import
  with APScheduler when IMPORT_HOUR is set
- Exposing Prometheus operational metrics in scheduled mode
"""

import logging
import os
import sys
import time
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from octo_influx.importer import OctopusImporter
from octo_influx.influxdb_exporter import InfluxDBExporter, InfluxDBWriteError
from octo_influx.metrics import ImportMetrics
from octo_influx.octopus_client import OctopusAPIError, OctopusAuthError, OctopusClient

# Configure module logger
logger = logging.getLogger(__name__)

# Global instances (shared across scheduled runs)
import_metrics: Optional[ImportMetrics] = None
influxdb_exporter: Optional[InfluxDBExporter] = None

# Configuration from environment
config = {
    "email": "",
    "password": "",
    "account_id": "",
    "api_url": OctopusClient.BASE_URL,
    "request_timeout": 30,
    "num_readings": 1000,
    "unit_rates_num_readings": 100,
    "import_hour": None,
    "exporter_port": 9120,
    # InfluxDB config
    "influxdb_url": "http://localhost:8086",
    "influxdb_token": "",
    "influxdb_org": "octopus",
    "influxdb_bucket": "energy",
}


def _int_from_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name}, using default: {default}")
        return default


def load_config() -> bool:
    """Load configuration from environment variables.

    Required:
        OCTOPUS_EMAIL: Octopus account email address
        OCTOPUS_PASSWORD: Octopus account password
        OCTOPUS_ACCOUNT_ID: Account number, e.g. A-1234ABCD
        INFLUXDB_TOKEN: InfluxDB API token

    Optional:
        OCTOPUS_API_URL: API root (default: https://api.octopus.energy/v1)
        REQUEST_TIMEOUT: API request timeout in seconds (default: 30)
        NUM_READINGS: Consumption readings fetched per meter (default: 1000)
        UNIT_RATES_NUM_READINGS: Unit rates fetched per property (default: 100)
        IMPORT_HOUR: Hour to run a daily import; unset runs once and exits
        EXPORTER_PORT: Prometheus port in scheduled mode (default: 9120)
        INFLUXDB_URL: InfluxDB server URL (default: http://localhost:8086)
        INFLUXDB_ORG: InfluxDB organization (default: octopus)
        INFLUXDB_BUCKET: InfluxDB bucket (default: energy)

    Returns:
        True if all required config loaded, False otherwise
    """
    config["email"] = os.getenv("OCTOPUS_EMAIL", "")
    config["password"] = os.getenv("OCTOPUS_PASSWORD", "")
    config["account_id"] = os.getenv("OCTOPUS_ACCOUNT_ID", "")
    config["api_url"] = os.getenv("OCTOPUS_API_URL", OctopusClient.BASE_URL)

    config["request_timeout"] = _int_from_env("REQUEST_TIMEOUT", 30)
    config["num_readings"] = _int_from_env("NUM_READINGS", 1000)
    config["unit_rates_num_readings"] = _int_from_env("UNIT_RATES_NUM_READINGS", 100)
    config["exporter_port"] = _int_from_env("EXPORTER_PORT", 9120)

    import_hour = os.getenv("IMPORT_HOUR", "")
    config["import_hour"] = None
    if import_hour:
        try:
            config["import_hour"] = int(import_hour)
        except ValueError:
            logger.warning(f"Invalid IMPORT_HOUR {import_hour!r}, running once")
        else:
            if not 0 <= config["import_hour"] <= 23:
                logger.warning(f"IMPORT_HOUR out of range: {import_hour}, running once")
                config["import_hour"] = None

    # InfluxDB configuration
    config["influxdb_url"] = os.getenv("INFLUXDB_URL", "http://localhost:8086")
    config["influxdb_token"] = os.getenv("INFLUXDB_TOKEN", "")
    config["influxdb_org"] = os.getenv("INFLUXDB_ORG", "octopus")
    config["influxdb_bucket"] = os.getenv("INFLUXDB_BUCKET", "energy")

    # Validate required config
    missing = []
    if not config["email"]:
        missing.append("OCTOPUS_EMAIL")
    if not config["password"]:
        missing.append("OCTOPUS_PASSWORD")
    if not config["account_id"]:
        missing.append("OCTOPUS_ACCOUNT_ID")
    if not config["influxdb_token"]:
        missing.append("INFLUXDB_TOKEN")

    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        return False

    logger.info(f"Configuration loaded: account={config['account_id']}, "
                f"num_readings={config['num_readings']}, "
                f"unit_rates_num_readings={config['unit_rates_num_readings']}, "
                f"influxdb_url={config['influxdb_url']}")
    return True


def run_import() -> bool:
    """Execute one import pass.

    This function:
    1. Creates an OctopusClient
    2. Runs OctopusImporter against the connected InfluxDB exporter
    3. Updates Prometheus operational metrics
    4. Logs success/failure

    Returns:
        True if the import succeeded, False otherwise
    """
    logger.info("Starting import")
    start_time = time.time()

    client = OctopusClient(base_url=config["api_url"], timeout=config["request_timeout"])
    importer = OctopusImporter(
        client=client,
        exporter=influxdb_exporter,
        email=config["email"],
        password=config["password"],
        account_id=config["account_id"],
        num_readings=config["num_readings"],
        unit_rates_num_readings=config["unit_rates_num_readings"],
    )

    try:
        summary = importer.run()

        if import_metrics:
            import_metrics.record_import(True, time.time() - start_time, summary.points_written)

        logger.info("Import completed successfully")
        return True

    except OctopusAuthError as e:
        logger.error(f"Import failed (authentication error): {e}")
    except OctopusAPIError as e:
        logger.error(f"Import failed (API error): {e}")
    except InfluxDBWriteError as e:
        logger.error(f"Import failed (InfluxDB write error): {e}")
    except Exception as e:
        logger.exception(f"Import failed (unexpected error): {e}")
    finally:
        client.close()

    if import_metrics:
        import_metrics.record_import(False, time.time() - start_time)
    return False


def main() -> int:
    """Main entry point.

    1. Load .env file with python-dotenv
    2. Load and validate configuration
    3. Connect to InfluxDB
    4. Without IMPORT_HOUR: run one import and exit
    5. With IMPORT_HOUR: start the metrics server, run an import at startup
       and then daily at that hour (block on scheduler)

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    global import_metrics, influxdb_exporter

    # Configure logging
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    logger.info("octo-influx starting")

    load_dotenv()

    if not load_config():
        logger.error("Configuration failed, exiting")
        return 1

    influxdb_exporter = InfluxDBExporter(
        url=config["influxdb_url"],
        token=config["influxdb_token"],
        org=config["influxdb_org"],
        bucket=config["influxdb_bucket"],
    )

    if not influxdb_exporter.connect():
        logger.error("Failed to connect to InfluxDB, exiting")
        return 1

    try:
        if config["import_hour"] is None:
            return 0 if run_import() else 1

        import_metrics = ImportMetrics(port=config["exporter_port"])
        import_metrics.start()
        logger.info(f"Prometheus metrics available at http://localhost:{config['exporter_port']}/metrics")

        scheduler = BlockingScheduler()
        scheduler.add_job(
            run_import,
            trigger=CronTrigger(hour=config["import_hour"], minute=0),
            id="daily_import",
            name=f"Daily import at {config['import_hour']}:00"
        )
        logger.info(f"Scheduled daily import at {config['import_hour']}:00")

        logger.info("Running initial import at startup")
        run_import()

        logger.info("Starting scheduler, press Ctrl+C to exit")
        try:
            scheduler.start()
        except KeyboardInterrupt:
            logger.info("Received interrupt, shutting down")
            scheduler.shutdown()

        return 0
    finally:
        influxdb_exporter.close()


if __name__ == "__main__":
    sys.exit(main())
