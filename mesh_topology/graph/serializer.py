"""
拓扑图序列化

把 TrafficGraph 转换成前端可直接使用的 JSON 数据
"""

import os
import json
import logging
from typing import Any, Dict

from mesh_topology.models.graph_models import GraphEdge, GraphNode, NodeType, TrafficGraph

logger = logging.getLogger(__name__)


class GraphSerializer:
    """服务拓扑图序列化器"""

    def __init__(self, graph: TrafficGraph):
        self.graph = graph

    def generate(self) -> Dict[str, Any]:
        """
        生成图数据

        Returns:
            包含节点、边和元数据的字典
        """
        nodes = [self._node_dict(node) for node in self.graph.nodes.values()]
        edges = [self._edge_dict(edge) for edge in self.graph.edges.values()]
        return {
            "nodes": nodes,
            "edges": edges,
            "metadata": {
                "namespaces": list(self.graph.namespaces),
                "queryTime": self.graph.query_time.isoformat() if self.graph.query_time else None,
                "duration": self.graph.duration,
                "totalNodes": len(nodes),
                "totalEdges": len(edges),
                "complete": self.graph.is_complete,
                "skippedAppenders": list(self.graph.skipped_appenders),
            },
        }

    def _node_dict(self, node: GraphNode) -> Dict[str, Any]:
        return {
            "id": node.node_id,
            "nodeType": node.node_type.value,
            "namespace": node.namespace,
            "workload": node.workload,
            "app": node.app,
            "version": node.version,
            "service": node.service,
            "shape": self._get_node_shape(node),
            "annotations": dict(node.metadata),
        }

    def _edge_dict(self, edge: GraphEdge) -> Dict[str, Any]:
        return {
            "id": f"{edge.source}->{edge.target}:{edge.protocol}",
            "source": edge.source,
            "target": edge.target,
            "protocol": edge.protocol,
            "rate": round(edge.weight, 3),
            "responseCodes": {code: round(rate, 3) for code, rate in edge.response_codes.items()},
            "errorRate": self._error_rate(edge),
            "annotations": dict(edge.metadata),
        }

    @staticmethod
    def _error_rate(edge: GraphEdge) -> float:
        """5xx 响应占比"""
        if edge.weight <= 0:
            return 0.0
        errors = sum(rate for code, rate in edge.response_codes.items() if code.startswith("5"))
        return round(errors / edge.weight, 3)

    @staticmethod
    def _get_node_shape(node: GraphNode) -> str:
        """获取节点形状"""
        if node.metadata.get("isServiceEntry"):
            return "square"
        if node.node_type is NodeType.SERVICE:
            return "triangle"
        if node.node_type is NodeType.UNKNOWN:
            return "diamond"
        return "circle"

    def save_to_file(self, filepath: str):
        """保存图数据到文件"""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.generate(), f, indent=2, ensure_ascii=False)

        logger.info(f"图数据已保存到: {filepath}")
