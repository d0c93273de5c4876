"""路由配置匹配算法：纯函数，不做任何 I/O"""

from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN, filter_by_host
from mesh_topology.matching.route_resolver import (
    check_virtual_service,
    check_virtual_service_subset,
    filter_by_destination,
    filter_by_route,
    filter_by_route_and_subset,
)
from mesh_topology.matching.subset_resolver import get_destination_rules_subsets
from mesh_topology.matching.resilience import (
    check_destination_rule_circuit_breaker,
    check_traffic_policy,
)
from mesh_topology.matching.gateway_validator import (
    MESH_GATEWAY,
    gateway_names,
    unknown_gateways,
    validate_virtual_service_gateways,
)
from mesh_topology.matching.external_hosts import (
    map_port_to_virtual_service_protocol,
    service_entry_hostnames,
)

__all__ = [
    "DEFAULT_IDENTITY_DOMAIN",
    "filter_by_host",
    "check_virtual_service",
    "check_virtual_service_subset",
    "filter_by_destination",
    "filter_by_route",
    "filter_by_route_and_subset",
    "get_destination_rules_subsets",
    "check_destination_rule_circuit_breaker",
    "check_traffic_policy",
    "MESH_GATEWAY",
    "gateway_names",
    "unknown_gateways",
    "validate_virtual_service_gateways",
    "map_port_to_virtual_service_protocol",
    "service_entry_hostnames",
]
