"""
Prometheus 即时查询

查询失败或结果不是即时向量时抛出 TelemetryUnavailableError，由调用方按策略决定是否终止流水线，
不会返回空结果作为兜底。
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from mesh_topology.errors import TelemetryUnavailableError
from mesh_topology.models.graph_models import TelemetrySample, TelemetryVector

logger = logging.getLogger(__name__)

# 与 metrics API 保持一致的取整精度
ROUND_PRECISION = "0.001"


class PrometheusClient:
    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def query(self, promql: str, query_time: Optional[datetime] = None) -> TelemetryVector:
        """
        执行即时 PromQL 查询，返回即时向量。

        每次调用在自身范围内打开并释放连接，超时表现为查询失败。
        """
        url = f"{self.base_url}/api/v1/query"
        params: Dict[str, Any] = {"query": promql}
        if query_time is not None:
            params["time"] = query_time.timestamp()
        try:
            with self.session.get(url, params=params, timeout=self.timeout) as resp:
                resp.raise_for_status()
                data = resp.json()
        except requests.exceptions.RequestException as e:
            raise TelemetryUnavailableError(f"Prometheus 查询失败: {e}", query=promql) from e
        except ValueError as e:
            raise TelemetryUnavailableError(f"Prometheus 返回内容无法解析为JSON: {e}", query=promql) from e

        if not isinstance(data, dict) or data.get("status") != "success":
            raise TelemetryUnavailableError(f"Prometheus 查询失败: {data}", query=promql)
        return parse_vector(data.get("data"), promql)


def parse_vector(data: Any, promql: str = "") -> TelemetryVector:
    """把 /api/v1/query 的 data 部分解析为 TelemetryVector"""
    result_type = data.get("resultType") if isinstance(data, dict) else None
    if result_type != "vector":
        raise TelemetryUnavailableError(f"不支持的结果类型: {result_type}", query=promql)

    samples = []
    for item in data.get("result") or []:
        try:
            timestamp, value = item["value"]
            samples.append(TelemetrySample(
                labels={str(k): str(v) for k, v in (item.get("metric") or {}).items()},
                value=float(value),
                timestamp=float(timestamp),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise TelemetryUnavailableError(f"无法解析向量样本 {item}: {e}", query=promql) from e
    return TelemetryVector(samples)


def prom_query(client: PrometheusClient, query: str, query_time: datetime) -> TelemetryVector:
    """
    执行拓扑图使用的查询

    表达式统一包上 round(..., 0.001)，消除重复查询之间的浮点噪声。
    """
    query = f"round({query},{ROUND_PRECISION})"
    logger.debug(f"Appender query:\n{query}&time={query_time.isoformat()} "
                 f"(now={datetime.now().isoformat()}, {int(query_time.timestamp())})")
    return client.query(query, query_time)
