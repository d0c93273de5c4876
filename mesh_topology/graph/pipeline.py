"""
Appender 流水线

按声明顺序依次执行各个 appender，每个 appender 读取只读的执行上下文并返回（可能被修改的）拓扑图。
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Type

from mesh_topology.errors import MeshTopologyError, PipelineError, TelemetryUnavailableError
from mesh_topology.kube.details_fetcher import ConfigSnapshotFetcher
from mesh_topology.kube.istio_client import IstioClient
from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN
from mesh_topology.models.graph_models import ConfigSnapshot, TelemetryVector, TrafficGraph
from mesh_topology.telemetry.prometheus_client import PrometheusClient

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """流水线状态"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TelemetryFailurePolicy(Enum):
    """遥测不可用时的处理策略"""
    FAIL_PIPELINE = "fail_pipeline"
    SKIP_APPENDER = "skip_appender"


@dataclass(frozen=True)
class AppenderContext:
    """
    appender 的只读执行上下文

    配置快照按命名空间懒加载并缓存，同一次请求内的多个 appender 共享同一份快照。
    """
    namespaces: Tuple[str, ...]
    query_time: datetime
    istio_client: IstioClient
    prometheus: Optional[PrometheusClient] = None
    duration: str = "10m"
    identity_domain: str = DEFAULT_IDENTITY_DOMAIN
    version_label: str = "version"
    telemetry: TelemetryVector = field(default_factory=TelemetryVector)

    _snapshots: Dict[str, ConfigSnapshot] = field(default_factory=dict, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def snapshot(self, namespace: str) -> ConfigSnapshot:
        """获取命名空间的配置快照（VirtualService + DestinationRule）"""
        with self._lock:
            cached = self._snapshots.get(namespace)
            if cached is not None:
                return cached
            snapshot = ConfigSnapshotFetcher(self.istio_client).fetch(namespace)
            self._snapshots[namespace] = snapshot
            return snapshot


class Appender(ABC):
    """拓扑图 appender 基类"""

    name = "appender"

    @abstractmethod
    def append(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        """
        对拓扑图做一次增强

        只能新增或更新节点 / 边的标注，不能删除其它 appender 写入的标注。
        """
        pass


class AppenderRegistry:
    """appender 注册表"""

    def __init__(self):
        self._appenders: Dict[str, Type[Appender]] = {}

    def register(self, appender_cls: Type[Appender]) -> Type[Appender]:
        """注册 appender，可作为类装饰器使用"""
        self._appenders[appender_cls.name] = appender_cls
        return appender_cls

    def create(self, names: Sequence[str]) -> List[Appender]:
        """按名称顺序创建 appender 实例"""
        appenders = []
        for name in names:
            appender_cls = self._appenders.get(name)
            if appender_cls is None:
                raise MeshTopologyError(f"未知的 appender: {name}")
            appenders.append(appender_cls())
        return appenders

    def names(self) -> List[str]:
        return list(self._appenders)


# 全局 appender 注册表
global_appender_registry = AppenderRegistry()


class AppenderPipeline:
    """按固定顺序执行 appender 的流水线"""

    def __init__(self, appenders: Sequence[Appender],
                 telemetry_policy: TelemetryFailurePolicy = TelemetryFailurePolicy.FAIL_PIPELINE):
        self.appenders = list(appenders)
        self.telemetry_policy = telemetry_policy
        self.state = PipelineState.IDLE
        self.failed_appender: Optional[str] = None

    def run(self, graph: TrafficGraph, context: AppenderContext) -> TrafficGraph:
        """
        运行流水线

        Returns:
            增强后的拓扑图

        Raises:
            PipelineError: 第一个失败的 appender，流水线进入 FAILED 状态
        """
        if self.state is not PipelineState.IDLE:
            raise MeshTopologyError(f"流水线状态为 {self.state.value}，不能重复运行")
        self.state = PipelineState.RUNNING

        for appender in self.appenders:
            logger.debug(f"执行 appender: {appender.name}")
            try:
                graph = appender.append(graph, context)
            except TelemetryUnavailableError as e:
                if self.telemetry_policy is TelemetryFailurePolicy.SKIP_APPENDER:
                    logger.warning(f"遥测不可用，跳过 appender {appender.name}: {e}")
                    graph.skipped_appenders.append(appender.name)
                    continue
                self._fail(appender.name, e)
            except Exception as e:
                self._fail(appender.name, e)

        self.state = PipelineState.COMPLETED
        logger.info(f"流水线执行完成: {len(self.appenders)} 个 appender, "
                    f"跳过 {len(graph.skipped_appenders)} 个")
        return graph

    def _fail(self, appender_name: str, cause: Exception):
        self.state = PipelineState.FAILED
        self.failed_appender = appender_name
        error = PipelineError(appender_name, cause)
        logger.error(str(error), exc_info=not isinstance(cause, MeshTopologyError))
        raise error from cause
