"""Telemetry readiness, Prometheus signal loading and demand forecasting for predictive scaling."""

__version__ = "0.1.0"