"""
ServiceEntry appender

把流量目标中属于网格外部（由 ServiceEntry 声明）的服务节点标注出来
"""

import logging
from typing import Dict, List, Set

from mesh_topology.graph.pipeline import Appender, AppenderContext, global_appender_registry
from mesh_topology.matching.external_hosts import service_entry_hostnames
from mesh_topology.matching.route_resolver import filter_by_route
from mesh_topology.models.graph_models import GraphNode, NodeType, TrafficGraph
from mesh_topology.models.istio_objects import ROUTE_PROTOCOLS

logger = logging.getLogger(__name__)

# 遥测中的 request_protocol -> 可能对应的 ServiceEntry 协议类别
_TELEMETRY_PROTOCOL_CLASSES = {
    "http": ("http",),
    "http2": ("http",),
    "grpc": ("http",),
    "tcp": ("tcp", "tls"),
}

MESH_EXTERNAL = "MESH_EXTERNAL"


@global_appender_registry.register
class ServiceEntryAppender(Appender):
    """标注 ServiceEntry 声明的外部服务"""

    name = "service_entry"

    def append(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        indexes: Dict[str, Dict[str, bool]] = {}
        for namespace in context.namespaces:
            entries = context.istio_client.get_service_entries(namespace)
            indexes[namespace] = service_entry_hostnames(entries)
            logger.debug(f"{namespace}: {len(entries)} 个 ServiceEntry, {len(indexes[namespace])} 个外部主机")

        for node in graph.nodes.values():
            index = indexes.get(node.namespace)
            if not index or node.node_type is not NodeType.SERVICE:
                continue
            keys = self._matching_keys(graph, node, index)
            if not keys:
                continue
            node.metadata["isServiceEntry"] = MESH_EXTERNAL
            routed_by = self._routing_virtual_services(node, keys, context)
            if routed_by:
                node.metadata["routedBy"] = routed_by
        return graph

    @staticmethod
    def _matching_keys(graph: TrafficGraph, node: GraphNode, index: Dict[str, bool]) -> Set[str]:
        keys = set()
        for edge in graph.incoming_edges(node.node_id):
            for protocol_class in _TELEMETRY_PROTOCOL_CLASSES.get(edge.protocol, ("tcp",)):
                key = f"{protocol_class}{node.service}"
                if key in index:
                    keys.add(key)
        return keys

    @staticmethod
    def _routing_virtual_services(node: GraphNode, keys: Set[str],
                                  context: AppenderContext) -> List[str]:
        """路由到该外部主机的 VirtualService 名称"""
        snapshot = context.snapshot(node.namespace)
        return [
            vs.name for vs in snapshot.virtual_services
            if filter_by_route(vs.spec, ROUTE_PROTOCOLS, node.service, node.namespace,
                               keys, context.identity_domain)
        ]
