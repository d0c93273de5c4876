"""遥测查询"""

from mesh_topology.telemetry.prometheus_client import PrometheusClient, parse_vector, prom_query

__all__ = ["PrometheusClient", "parse_vector", "prom_query"]
