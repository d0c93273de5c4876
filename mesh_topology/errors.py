"""
错误类型定义

两类错误：
1. 配置检索错误（IstioApiError）：控制平面请求失败或返回结构不符合预期
2. 遥测错误（TelemetryUnavailableError）：指标查询失败或结果不是即时向量
"""

from typing import Optional


class MeshTopologyError(RuntimeError):
    """所有拓扑构建错误的基类"""

    kind = "internal"


class ConfigError(MeshTopologyError):
    """配置文件无法加载或取值非法"""

    kind = "config_invalid"


class IstioApiError(MeshTopologyError):
    """控制平面配置检索失败"""

    kind = "istio_api_unavailable"

    def __init__(self, message: str, collection: Optional[str] = None,
                 namespace: Optional[str] = None, name: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
        self.namespace = namespace
        self.name = name


class TelemetryUnavailableError(MeshTopologyError):
    """Prometheus 查询失败或返回了非向量结果"""

    kind = "telemetry_unavailable"

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class PipelineError(MeshTopologyError):
    """某个 appender 执行失败，整条流水线终止"""

    kind = "pipeline_failed"

    def __init__(self, appender: str, cause: Exception):
        self.appender = appender
        self.cause = cause
        self.collection = getattr(cause, "collection", None)
        if isinstance(cause, MeshTopologyError):
            self.kind = cause.kind
        message = f"appender {appender} 执行失败"
        if self.collection:
            message += f" (集合: {self.collection})"
        super().__init__(f"{message}: {cause}")

    def to_dict(self):
        return {
            "error": str(self),
            "kind": self.kind,
            "appender": self.appender,
            "collection": self.collection,
        }
