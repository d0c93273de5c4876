"""
网关引用校验
"""

from typing import Any, Collection, Iterable, Set

from mesh_topology.models.istio_objects import ConfigObject
from mesh_topology.utils.doc_utils import get_list

# 保留字，表示网格内所有 sidecar
MESH_GATEWAY = "mesh"


def gateway_names(gateways: Iterable[ConfigObject]) -> Set[str]:
    """提取 Gateway 名称，便于匹配"""
    return {gateway.name for gateway in gateways}


def validate_virtual_service_gateways(spec: Any, known_gateways: Collection[str]) -> bool:
    """
    VirtualService 引用的网关（mesh 除外）是否都存在

    没有声明 gateways 时视为全部有效。
    """
    for gateway in get_list(spec, "gateways"):
        if not isinstance(gateway, str):
            continue
        if gateway != MESH_GATEWAY and gateway not in known_gateways:
            return False
    return True


def unknown_gateways(spec: Any, known_gateways: Collection[str]) -> Set[str]:
    """返回所有无法解析的网关引用"""
    return {
        gateway for gateway in get_list(spec, "gateways")
        if isinstance(gateway, str) and gateway != MESH_GATEWAY and gateway not in known_gateways
    }
