"""
路由解析

遍历 VirtualService 的 http / tcp 路由，判断某个服务（或其某个子集）是否出现在路由目标中
"""

from typing import Any, Collection, Iterable, Mapping, Optional

from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN, filter_by_host
from mesh_topology.models.istio_objects import (
    ConfigObject, ROUTE_PROTOCOLS, iter_route_destinations
)
from mesh_topology.utils.doc_utils import get_dict, get_list, get_str, has_key


def filter_by_route(spec: Any, protocols: Iterable[str], service_name: str, namespace: str,
                    service_entries: Optional[Collection[str]] = None,
                    identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """
    路由中是否存在指向该服务的目标

    Args:
        spec: VirtualService 的 spec 文档
        protocols: 依次检查的路由协议，如 ("http", "tcp")
        service_name: 服务名
        namespace: 服务所在命名空间
        service_entries: ExternalHostIndex 构建的外部主机索引，可为 None
        identity_domain: 集群内部服务域名后缀

    Returns:
        找到第一个匹配的目标即返回 True
    """
    for protocol in protocols:
        for destination in iter_route_destinations(spec, protocol):
            if filter_by_host(destination.host, service_name, namespace, identity_domain):
                return True
            if service_entries is not None and protocol.lower() + destination.host in service_entries:
                return True
    return False


def filter_by_route_and_subset(spec: Any, protocols: Iterable[str], service_name: str,
                               namespace: str, subsets: Collection[str],
                               identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """与 filter_by_route 相同的遍历，但还要求目标声明的 subset 在给定集合中"""
    for protocol in protocols:
        for destination in iter_route_destinations(spec, protocol):
            if destination.subset is None:
                continue
            if (filter_by_host(destination.host, service_name, namespace, identity_domain)
                    and destination.subset in subsets):
                return True
    return False


def check_virtual_service(virtual_service: Optional[ConfigObject], namespace: str,
                          service_name: str,
                          identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """VirtualService 的 hosts 中是否声明了该服务"""
    if virtual_service is None or not virtual_service.spec or not service_name:
        return False
    for host in get_list(virtual_service.spec, "hosts"):
        if isinstance(host, str) and filter_by_host(host, service_name, namespace, identity_domain):
            return True
    return False


def check_virtual_service_subset(virtual_service: Optional[ConfigObject], namespace: str,
                                 service_name: str, subsets: Optional[Collection[str]],
                                 identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """VirtualService 是否为该服务的任一子集定义了路由"""
    if virtual_service is None or not virtual_service.spec or subsets is None:
        return False
    if len(subsets) == 0:
        return False
    return filter_by_route_and_subset(
        virtual_service.spec, ROUTE_PROTOCOLS, service_name, namespace, subsets, identity_domain
    )


def filter_by_destination(spec: Any, namespace: str, service_name: str, version: str,
                          version_label: str) -> bool:
    """
    旧版路由规则的 destination 匹配

    destination 中声明了 namespace / name 时必须一致；带 labels 且给定了版本时，
    版本标签必须相等；没有 labels 表示作用于整个服务。
    """
    if not has_key(spec, "destination"):
        return False
    destination = spec["destination"]
    if not isinstance(destination, Mapping):
        return False
    if "namespace" in destination and destination["namespace"] != namespace:
        return False
    if "name" in destination and destination["name"] != service_name:
        return False

    if "labels" in destination and version:
        return get_str(get_dict(destination, "labels"), version_label) == version
    return True
