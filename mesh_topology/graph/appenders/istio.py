"""
Istio 配置 appender

节点: hasCB（熔断）、hasVS（VirtualService）
边:   目标版本对应的子集、该子集是否被 VirtualService 路由
"""

import logging
from typing import Any, Dict

from mesh_topology.graph.pipeline import Appender, AppenderContext, global_appender_registry
from mesh_topology.matching.resilience import check_destination_rule_circuit_breaker
from mesh_topology.matching.route_resolver import (
    check_virtual_service, check_virtual_service_subset
)
from mesh_topology.matching.subset_resolver import get_destination_rules_subsets
from mesh_topology.models.graph_models import GraphNode, ServiceIdentity, TrafficGraph

logger = logging.getLogger(__name__)


@global_appender_registry.register
class IstioAppender(Appender):
    """根据 VirtualService / DestinationRule 标注熔断和路由信息"""

    name = "istio"

    def append(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        annotated = 0
        for node in graph.nodes.values():
            if not self._in_scope(node, context):
                continue
            self._annotate_node(node.identity, node.metadata, context)
            annotated += 1

        for edge in graph.edges.values():
            target = graph.nodes.get(edge.target)
            if target is None or not self._in_scope(target, context) or not target.version:
                continue
            identity = target.identity
            snapshot = context.snapshot(identity.namespace)
            subsets = get_destination_rules_subsets(
                snapshot.destination_rules, identity.name, identity.version,
                context.version_label, context.identity_domain
            )
            if not subsets:
                continue
            edge.metadata["subsets"] = subsets
            if any(check_virtual_service_subset(vs, identity.namespace, identity.name,
                                                subsets, context.identity_domain)
                   for vs in snapshot.virtual_services):
                edge.metadata["isVirtualServiceSubset"] = True

        logger.debug(f"istio appender 标注了 {annotated} 个节点")
        return graph

    @staticmethod
    def _in_scope(node: GraphNode, context: AppenderContext) -> bool:
        return bool(node.service_name) and node.namespace in context.namespaces

    @staticmethod
    def _annotate_node(identity: ServiceIdentity, metadata: Dict[str, Any], context: AppenderContext):
        snapshot = context.snapshot(identity.namespace)
        if any(check_destination_rule_circuit_breaker(dr, identity.namespace, identity.name,
                                                      identity.version or "", context.version_label,
                                                      context.identity_domain)
               for dr in snapshot.destination_rules):
            metadata["hasCB"] = True
        if any(check_virtual_service(vs, identity.namespace, identity.name, context.identity_domain)
               for vs in snapshot.virtual_services):
            metadata["hasVS"] = True
