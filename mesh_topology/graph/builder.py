"""
基础拓扑图构建

把 istio_requests_total 的速率向量转换为节点和带权边
"""

import math
import logging
from datetime import datetime
from typing import Iterable, Optional

from mesh_topology.models.graph_models import (
    GraphNode, NodeType, TelemetrySample, TelemetryVector, TrafficGraph
)

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

# 构建拓扑图所需的标签，查询时按这些标签聚合
TRAFFIC_GROUP_LABELS = (
    "source_workload_namespace",
    "source_workload",
    "source_app",
    "source_version",
    "destination_service_namespace",
    "destination_service_name",
    "destination_workload",
    "destination_app",
    "destination_version",
    "request_protocol",
)


def _known(value: Optional[str]) -> str:
    return "" if not value or value == UNKNOWN else value


def node_id_for(namespace: str, workload: str, service: str) -> str:
    """节点ID：优先使用工作负载，否则使用服务"""
    namespace = _known(namespace)
    if _known(workload) and namespace:
        return f"{namespace}/workload/{workload}"
    if _known(service) and namespace:
        return f"{namespace}/service/{service}"
    return UNKNOWN


def source_node(sample: TelemetrySample) -> GraphNode:
    namespace = sample.label("source_workload_namespace")
    workload = sample.label("source_workload")
    node_id = node_id_for(namespace, workload, "")
    return GraphNode(
        node_id=node_id,
        node_type=NodeType.WORKLOAD if node_id != UNKNOWN else NodeType.UNKNOWN,
        namespace=_known(namespace),
        workload=_known(workload),
        app=_known(sample.label("source_app")),
        version=_known(sample.label("source_version")),
    )


def destination_node(sample: TelemetrySample) -> GraphNode:
    """
    目标节点

    源 sidecar 上报的外部服务可能没有目标命名空间，此时把服务节点放在源命名空间，
    与声明它的 ServiceEntry 所在命名空间一致。
    """
    namespace = sample.label("destination_service_namespace")
    workload = sample.label("destination_workload")
    service = sample.label("destination_service_name")
    if not _known(namespace) and _known(service):
        namespace = sample.label("source_workload_namespace")
    node_id = node_id_for(namespace, workload, service)
    if node_id == UNKNOWN:
        node_type = NodeType.UNKNOWN
    elif _known(workload):
        node_type = NodeType.WORKLOAD
    else:
        node_type = NodeType.SERVICE
    return GraphNode(
        node_id=node_id,
        node_type=node_type,
        namespace=_known(namespace),
        workload=_known(workload),
        app=_known(sample.label("destination_app")),
        version=_known(sample.label("destination_version")),
        service=_known(service),
    )


def edge_protocol(sample: TelemetrySample) -> str:
    return (_known(sample.label("request_protocol")) or "http").lower()


def build_traffic_graph(vector: TelemetryVector,
                        namespaces: Iterable[str] = (),
                        query_time: Optional[datetime] = None,
                        duration: str = "10m") -> TrafficGraph:
    """
    由流量向量构建拓扑图

    同一 (source, target, protocol) 的样本累加到同一条边上，同时按 response_code 分别累计。
    """
    graph = TrafficGraph(namespaces=list(namespaces), query_time=query_time, duration=duration)
    for sample in vector:
        if not math.isfinite(sample.value):
            continue
        source = graph.add_node(source_node(sample))
        target = graph.add_node(destination_node(sample))
        # 目标节点可能先作为源节点出现过，补全服务名
        if not target.service:
            target.service = _known(sample.label("destination_service_name"))
        graph.add_traffic(
            source.node_id,
            target.node_id,
            edge_protocol(sample),
            sample.value,
            sample.label("response_code") or None,
        )
    logger.info(f"基础拓扑图: {len(graph.nodes)} 个节点, {len(graph.edges)} 条边")
    return graph
