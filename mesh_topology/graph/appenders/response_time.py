"""
响应时间 appender

按边查询请求耗时的分位数（毫秒）
"""

import math
import logging

from mesh_topology.errors import MeshTopologyError
from mesh_topology.graph.builder import TRAFFIC_GROUP_LABELS, destination_node, edge_protocol, source_node
from mesh_topology.graph.pipeline import Appender, AppenderContext, global_appender_registry
from mesh_topology.models.graph_models import TrafficGraph
from mesh_topology.telemetry.prometheus_client import prom_query

logger = logging.getLogger(__name__)

DEFAULT_QUANTILE = 0.95


@global_appender_registry.register
class ResponseTimeAppender(Appender):
    """标注边的响应时间"""

    name = "response_time"

    def __init__(self, quantile: float = DEFAULT_QUANTILE):
        self.quantile = quantile

    def build_query(self, context: AppenderContext) -> str:
        namespaces = "|".join(context.namespaces)
        group_by = ",".join(("le",) + TRAFFIC_GROUP_LABELS)
        selectors = (
            f'reporter="destination",destination_service_namespace=~"{namespaces}"',
            # 外部服务只有源 sidecar 上报
            f'reporter="source",source_workload_namespace=~"{namespaces}",destination_workload="unknown"',
        )
        return " or ".join(
            f"histogram_quantile({self.quantile}, sum(rate("
            f"istio_request_duration_seconds_bucket{{{selector}}}[{context.duration}])) "
            f"by ({group_by}))"
            for selector in selectors
        )

    def append(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        if context.prometheus is None:
            raise MeshTopologyError("response_time appender 需要 Prometheus 客户端")

        vector = prom_query(context.prometheus, self.build_query(context), context.query_time)
        matched = 0
        for sample in vector:
            if not math.isfinite(sample.value):
                continue
            key = (source_node(sample).node_id, destination_node(sample).node_id, edge_protocol(sample))
            edge = graph.edges.get(key)
            if edge is None:
                continue
            edge.metadata["responseTime"] = round(sample.value * 1000, 3)
            matched += 1
        logger.debug(f"response_time appender 标注了 {matched} 条边")
        return graph
