"""
拓扑图服务

负责一次请求的完整流程：查询流量 -> 构建基础图 -> 运行 appender 流水线
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from mesh_topology.config import GlobalConfig
from mesh_topology.graph import appenders  # noqa: F401  注册内置 appender
from mesh_topology.graph.builder import TRAFFIC_GROUP_LABELS, build_traffic_graph
from mesh_topology.graph.pipeline import (
    AppenderContext, AppenderPipeline, TelemetryFailurePolicy, global_appender_registry
)
from mesh_topology.kube.details_fetcher import get_istio_details
from mesh_topology.kube.istio_client import FileIstioClient, IstioClient, KubeIstioClient
from mesh_topology.models.graph_models import ConfigSnapshot, TrafficGraph
from mesh_topology.telemetry.prometheus_client import PrometheusClient, prom_query

logger = logging.getLogger(__name__)


def build_traffic_query(namespaces: Sequence[str], duration: str) -> str:
    """
    按命名空间查询请求速率的 PromQL

    网格内的流量取目标 sidecar 上报的数据；目标没有 sidecar 时（ServiceEntry 声明的外部服务等）
    只有源 sidecar 会上报，这部分按源命名空间取 reporter="source" 的数据。两部分的标签集不相交。
    """
    selector = "|".join(namespaces)
    group_by = ",".join(TRAFFIC_GROUP_LABELS + ("response_code",))
    inbound = (
        f'sum(rate(istio_requests_total{{reporter="destination",'
        f'destination_service_namespace=~"{selector}"}}[{duration}])) by ({group_by})'
    )
    outbound = (
        f'sum(rate(istio_requests_total{{reporter="source",'
        f'source_workload_namespace=~"{selector}",destination_workload="unknown"}}[{duration}])) '
        f'by ({group_by})'
    )
    return f"{inbound} or {outbound}"


class GraphService:
    """拓扑图构建服务"""

    def __init__(self, config: GlobalConfig,
                 istio_client: Optional[IstioClient] = None,
                 prometheus: Optional[PrometheusClient] = None):
        """
        初始化服务

        Args:
            config: 全局配置
            istio_client: 控制平面客户端，默认按配置创建
            prometheus: Prometheus 客户端，默认按配置创建
        """
        self.config = config
        self.istio_client = istio_client or self._create_istio_client(config)
        self.prometheus = prometheus or PrometheusClient(config.prometheus_url, config.request_timeout)

    @staticmethod
    def _create_istio_client(config: GlobalConfig) -> IstioClient:
        if config.config_dir:
            logger.info(f"离线模式: 从 {config.config_dir} 读取 Istio 配置")
            return FileIstioClient(config.config_dir, identity_domain=config.identity_domain)
        return KubeIstioClient.from_config(config)

    def build_graph(self, namespaces: Sequence[str], duration: Optional[str] = None,
                    query_time: Optional[datetime] = None) -> TrafficGraph:
        """
        构建拓扑图

        Raises:
            TelemetryUnavailableError: 基础流量查询失败
            PipelineError: 某个 appender 失败
        """
        duration = duration or self.config.default_duration
        query_time = query_time or datetime.now()
        namespaces = tuple(namespaces)
        logger.info(f"构建拓扑图: 命名空间={list(namespaces)}, 时间窗口={duration}")

        telemetry = prom_query(self.prometheus, build_traffic_query(namespaces, duration), query_time)
        graph = build_traffic_graph(telemetry, namespaces, query_time, duration)

        context = AppenderContext(
            namespaces=namespaces,
            query_time=query_time,
            istio_client=self.istio_client,
            prometheus=self.prometheus,
            duration=duration,
            identity_domain=self.config.identity_domain,
            version_label=self.config.version_label,
            telemetry=telemetry,
        )
        pipeline = AppenderPipeline(
            global_appender_registry.create(self.config.appenders),
            TelemetryFailurePolicy(self.config.telemetry_failure_policy),
        )
        return pipeline.run(graph, context)

    def istio_details(self, namespace: str, service_name: str = "") -> ConfigSnapshot:
        """获取命名空间（可选按服务过滤）的 Istio 配置快照"""
        return get_istio_details(self.istio_client, namespace, service_name)
