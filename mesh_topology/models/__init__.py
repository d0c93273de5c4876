"""数据模型模块"""

from mesh_topology.models.istio_objects import (
    ConfigObject,
    ConfigObjectKind,
    ObjectMeta,
    RouteDestination,
    ROUTE_PROTOCOLS,
    iter_route_destinations,
)
from mesh_topology.models.graph_models import (
    ConfigSnapshot,
    GraphEdge,
    GraphNode,
    NodeType,
    ServiceIdentity,
    Subset,
    TelemetrySample,
    TelemetryVector,
    TrafficGraph,
)

__all__ = [
    "ConfigObject",
    "ConfigObjectKind",
    "ObjectMeta",
    "RouteDestination",
    "ROUTE_PROTOCOLS",
    "iter_route_destinations",
    "ConfigSnapshot",
    "GraphEdge",
    "GraphNode",
    "NodeType",
    "ServiceIdentity",
    "Subset",
    "TelemetrySample",
    "TelemetryVector",
    "TrafficGraph",
]
