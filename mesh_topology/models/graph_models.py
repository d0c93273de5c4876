"""
拓扑图数据模型

定义服务身份、配置快照、遥测向量以及每次请求构建的流量拓扑图
"""

from collections import abc
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from mesh_topology.models.istio_objects import ConfigObject


class NodeType(Enum):
    """节点类型"""
    WORKLOAD = "workload"
    APP = "app"
    SERVICE = "service"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ServiceIdentity:
    """主机 / 路由匹配所针对的服务身份"""
    namespace: str
    name: str
    version: Optional[str] = None


@dataclass(frozen=True)
class Subset:
    """DestinationRule 中按版本标签划分的子集"""
    name: str
    version_label_value: str


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    某个命名空间的路由配置快照

    VirtualService 与 DestinationRule 要么同时获取成功，要么整体失败。
    """
    namespace: str
    service_name: str = ""
    virtual_services: Tuple[ConfigObject, ...] = ()
    destination_rules: Tuple[ConfigObject, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "service": self.service_name,
            "virtualServices": [vs.to_dict() for vs in self.virtual_services],
            "destinationRules": [dr.to_dict() for dr in self.destination_rules],
        }


@dataclass(frozen=True)
class TelemetrySample:
    """即时向量中的一个样本"""
    labels: Dict[str, str]
    value: float
    timestamp: float

    def label(self, name: str, default: str = "") -> str:
        return self.labels.get(name, default)


class TelemetryVector(abc.Sequence):
    """即时向量：有序、只读的样本序列"""

    def __init__(self, samples: Sequence[TelemetrySample] = ()):
        self._samples = tuple(samples)

    def __getitem__(self, index):
        return self._samples[index]

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[TelemetrySample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"TelemetryVector({len(self._samples)} samples)"


@dataclass
class GraphNode:
    """拓扑图节点"""
    node_id: str
    node_type: NodeType
    namespace: str
    workload: str = ""
    app: str = ""
    version: str = ""
    service: str = ""

    # appender 写入的标注，只增不删
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def service_name(self) -> str:
        """用于匹配路由配置的服务名"""
        return self.service or self.app

    @property
    def identity(self) -> ServiceIdentity:
        return ServiceIdentity(namespace=self.namespace, name=self.service_name,
                               version=self.version or None)


@dataclass
class GraphEdge:
    """拓扑图边，按 (source, target, protocol) 唯一"""
    source: str
    target: str
    protocol: str = "http"

    # 累计流量（请求速率）
    weight: float = 0.0
    response_codes: Dict[str, float] = field(default_factory=dict)

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source, self.target, self.protocol)


@dataclass
class TrafficGraph:
    """每次请求重新构建的流量拓扑图"""
    namespaces: List[str] = field(default_factory=list)
    query_time: Optional[datetime] = None
    duration: str = "10m"

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: Dict[Tuple[str, str, str], GraphEdge] = field(default_factory=dict)

    # 因遥测不可用而跳过的 appender
    skipped_appenders: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.skipped_appenders

    def add_node(self, node: GraphNode) -> GraphNode:
        """添加节点，已存在时返回原节点"""
        existing = self.nodes.get(node.node_id)
        if existing is not None:
            return existing
        self.nodes[node.node_id] = node
        return node

    def add_traffic(self, source: str, target: str, protocol: str, rate: float,
                    response_code: Optional[str] = None) -> GraphEdge:
        """在 (source, target, protocol) 边上累加流量"""
        key = (source, target, protocol)
        edge = self.edges.get(key)
        if edge is None:
            edge = GraphEdge(source=source, target=target, protocol=protocol)
            self.edges[key] = edge
        edge.weight += rate
        if response_code:
            edge.response_codes[response_code] = edge.response_codes.get(response_code, 0.0) + rate
        return edge

    def outgoing_edges(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges.values() if e.source == node_id]

    def incoming_edges(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges.values() if e.target == node_id]
