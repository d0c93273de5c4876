"""
子集解析

从 DestinationRule 中找出与某个部署版本对应的子集名
"""

from typing import Iterable, List

from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN, filter_by_host
from mesh_topology.models.graph_models import Subset
from mesh_topology.models.istio_objects import ConfigObject
from mesh_topology.utils.doc_utils import get_dict, get_list, get_str, iter_dicts


def iter_version_subsets(destination_rule: ConfigObject, version_label: str) -> Iterable[Subset]:
    """按文档顺序遍历带有版本标签的子集"""
    for subset in iter_dicts(get_list(destination_rule.spec, "subsets")):
        name = get_str(subset, "name")
        value = get_str(get_dict(subset, "labels"), version_label)
        if name is None or value is None:
            continue
        yield Subset(name=name, version_label_value=value)


def get_destination_rules_subsets(destination_rules: Iterable[ConfigObject], service_name: str,
                                  version: str, version_label: str,
                                  identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> List[str]:
    """
    返回为给定版本定义的子集名

    DestinationRule 的 host 按该规则自身的命名空间匹配。结果保持文档顺序，
    不去重也不排序；同一个子集名重复出现时会出现多次。
    """
    found_subsets: List[str] = []
    for destination_rule in destination_rules:
        host = get_str(destination_rule.spec, "host")
        if host is None or not filter_by_host(host, service_name, destination_rule.namespace,
                                              identity_domain):
            continue
        for subset in iter_version_subsets(destination_rule, version_label):
            if subset.version_label_value == version:
                found_subsets.append(subset.name)
    return found_subsets
