"""Prometheus query definitions, range-query client and signal adapter."""