"""Octopus Energy to InfluxDB importer package.

Authenticates with the Octopus Energy API, fetches consumption readings and
standard unit rates for every meter on an account, and writes them to
InfluxDB as time-series points.
"""

__version__ = "0.1.2"
