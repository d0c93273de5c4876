"""拓扑图 appender，导入时注册到 global_appender_registry"""

from mesh_topology.graph.appenders.istio import IstioAppender
from mesh_topology.graph.appenders.service_entry import ServiceEntryAppender
from mesh_topology.graph.appenders.gateway import GatewayAppender
from mesh_topology.graph.appenders.response_time import ResponseTimeAppender

__all__ = [
    "IstioAppender",
    "ServiceEntryAppender",
    "GatewayAppender",
    "ResponseTimeAppender",
]
