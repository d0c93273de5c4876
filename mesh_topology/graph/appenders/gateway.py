"""
Gateway appender

VirtualService 引用了不存在的网关时，在它所声明或路由到的服务节点上记录下来
"""

import logging

from mesh_topology.graph.pipeline import Appender, AppenderContext, global_appender_registry
from mesh_topology.matching.gateway_validator import (
    gateway_names, unknown_gateways, validate_virtual_service_gateways
)
from mesh_topology.matching.route_resolver import check_virtual_service, filter_by_route
from mesh_topology.models.graph_models import TrafficGraph
from mesh_topology.models.istio_objects import ConfigObject, ROUTE_PROTOCOLS

logger = logging.getLogger(__name__)


@global_appender_registry.register
class GatewayAppender(Appender):
    """校验 VirtualService 的网关引用"""

    name = "gateway"

    def append(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        for namespace in context.namespaces:
            known = gateway_names(context.istio_client.get_gateways(namespace))
            snapshot = context.snapshot(namespace)
            invalid = [vs for vs in snapshot.virtual_services
                       if not validate_virtual_service_gateways(vs.spec, known)]
            if not invalid:
                continue

            for vs in invalid:
                logger.warning(f"VirtualService {namespace}/{vs.name} 引用了不存在的网关: "
                               f"{sorted(unknown_gateways(vs.spec, known))}")

            for node in graph.nodes.values():
                if node.namespace != namespace or not node.service_name:
                    continue
                for vs in invalid:
                    if not self._affects(vs, namespace, node.service_name, context.identity_domain):
                        continue
                    entries = node.metadata.setdefault("invalidGateways", [])
                    if vs.name not in entries:
                        entries.append(vs.name)
        return graph

    @staticmethod
    def _affects(virtual_service: ConfigObject, namespace: str, service_name: str,
                 identity_domain: str) -> bool:
        """VirtualService 声明了该服务，或者路由到该服务（入口 VirtualService 的 hosts 通常是 "*"）"""
        return (check_virtual_service(virtual_service, namespace, service_name, identity_domain)
                or filter_by_route(virtual_service.spec, ROUTE_PROTOCOLS, service_name, namespace,
                                   None, identity_domain))
