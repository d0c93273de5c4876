"""
外部主机索引

从 ServiceEntry 中收集声明的主机名，键为 小写协议类别 + 主机名
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from mesh_topology.models.istio_objects import ConfigObject
from mesh_topology.utils.doc_utils import get_list, get_str, iter_dicts

logger = logging.getLogger(__name__)

# 端口协议 -> VirtualService 路由协议类别
#   http: HTTP / HTTP2 / GRPC
#   tls:  HTTPS / TLS（passthrough 模式）
#   tcp:  其它
_PROTOCOL_CLASSES = {
    "HTTP": "http",
    "HTTP2": "http",
    "GRPC": "http",
    "HTTPS": "tls",
    "TLS": "tls",
}


def map_port_to_virtual_service_protocol(protocol: str) -> str:
    """端口协议名映射到路由协议类别"""
    return _PROTOCOL_CLASSES.get(protocol, "tcp")


def _port_protocols(ports: Any) -> List[str]:
    # ports 可以是单个对象，也可以是端口列表
    if isinstance(ports, (list, tuple)):
        candidates = list(iter_dicts(ports))
    elif isinstance(ports, Mapping):
        candidates = [ports]
    else:
        return []
    protocols = []
    for port in candidates:
        protocol = get_str(port, "protocol")
        if protocol is not None:
            protocols.append(map_port_to_virtual_service_protocol(protocol))
    return protocols


def service_entry_hostnames(service_entries: Iterable[ConfigObject]) -> Dict[str, bool]:
    """
    构建外部主机索引

    Returns:
        {协议类别 + 主机名: True}；端口或主机数据缺失的条目不贡献任何键
    """
    hostnames: Dict[str, bool] = {}
    for entry in service_entries:
        hosts = [h for h in get_list(entry.spec, "hosts") if isinstance(h, str)]
        if not hosts:
            continue
        protocol_classes = _port_protocols(entry.spec.get("ports"))
        if not protocol_classes:
            logger.debug(f"ServiceEntry {entry.namespace}/{entry.name} 未声明端口协议，跳过")
            continue
        for protocol_class in protocol_classes:
            for host in hosts:
                hostnames[f"{protocol_class}{host}"] = True
    return hostnames
