"""
熔断检测

判断 DestinationRule 是否在服务级别或某个版本子集上声明了 connectionPool / outlierDetection
"""

from typing import Any, Optional

from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN, filter_by_host
from mesh_topology.models.istio_objects import ConfigObject
from mesh_topology.utils.doc_utils import get_dict, get_list, get_str, has_key, iter_dicts

CIRCUIT_BREAKER_KEYS = ("connectionPool", "outlierDetection")


def check_traffic_policy(traffic_policy: Any) -> bool:
    """trafficPolicy 中是否存在熔断相关的键（只看键是否存在）"""
    return any(has_key(traffic_policy, key) for key in CIRCUIT_BREAKER_KEYS)


def check_destination_rule_circuit_breaker(destination_rule: Optional[ConfigObject], namespace: str,
                                           service_name: str, version: str, version_label: str,
                                           identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """
    DestinationRule 是否为该服务（或该版本）声明了熔断策略

    Args:
        destination_rule: DestinationRule 配置对象
        namespace: 服务所在命名空间
        service_name: 服务名
        version: 工作负载版本，为空时只检查服务级别策略
        version_label: 表示版本的标签名
        identity_domain: 集群内部服务域名后缀

    Returns:
        服务级别 trafficPolicy 带熔断配置，或存在版本匹配且带熔断配置的子集时返回 True
    """
    if destination_rule is None or not destination_rule.spec:
        return False
    spec = destination_rule.spec
    host = get_str(spec, "host")
    if host is None or not filter_by_host(host, service_name, namespace, identity_domain):
        return False

    if check_traffic_policy(spec.get("trafficPolicy")):
        return True
    if not version:
        return False

    for subset in iter_dicts(get_list(spec, "subsets")):
        if not check_traffic_policy(subset.get("trafficPolicy")):
            continue
        if get_str(get_dict(subset, "labels"), version_label) == version:
            return True
    return False
