"""
服务网格拓扑图

该模块负责：
1. 从 Prometheus 获取服务间流量，构建拓扑图
2. 获取 Istio 路由配置，把流量边与 VirtualService / DestinationRule 关联起来
3. 通过 appender 流水线为拓扑图标注熔断、子集、外部服务、网关校验等信息
"""

__version__ = "1.0.0"

from mesh_topology.errors import (
    IstioApiError,
    MeshTopologyError,
    PipelineError,
    TelemetryUnavailableError,
)
from mesh_topology.models import ConfigObject, ConfigObjectKind, ConfigSnapshot, TrafficGraph
from mesh_topology.kube import ConfigSnapshotFetcher, get_istio_details
from mesh_topology.graph.pipeline import AppenderPipeline, AppenderContext
from mesh_topology.graph.service import GraphService

__all__ = [
    "IstioApiError",
    "MeshTopologyError",
    "PipelineError",
    "TelemetryUnavailableError",
    "ConfigObject",
    "ConfigObjectKind",
    "ConfigSnapshot",
    "TrafficGraph",
    "ConfigSnapshotFetcher",
    "get_istio_details",
    "AppenderPipeline",
    "AppenderContext",
    "GraphService",
]
