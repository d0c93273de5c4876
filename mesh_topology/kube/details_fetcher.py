"""
Istio 配置快照获取

并行获取一个命名空间下的 VirtualService 和 DestinationRule，组合成一致的 ConfigSnapshot。
"""

import logging
import concurrent.futures
from typing import Callable, List

from mesh_topology.kube.istio_client import IstioClient
from mesh_topology.models.graph_models import ConfigSnapshot
from mesh_topology.models.istio_objects import ConfigObject

logger = logging.getLogger(__name__)


class ConfigSnapshotFetcher:
    """配置快照获取器"""

    def __init__(self, client: IstioClient):
        self.client = client

    def fetch(self, namespace: str, service_name: str = "") -> ConfigSnapshot:
        """
        获取配置快照

        两个检索任务并行执行，并且总是都执行完毕后才返回。任一任务失败时只抛出该错误，
        两个都失败时优先抛出 VirtualService 的错误；不会返回部分快照。

        Args:
            namespace: 命名空间
            service_name: 服务名，为空表示不过滤

        Returns:
            配置快照
        """
        tasks: List[Callable[[str, str], List[ConfigObject]]] = [
            self.client.get_virtual_services,
            self.client.get_destination_rules,
        ]
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(tasks)) as executor:
            futures = [executor.submit(task, namespace, service_name) for task in tasks]
            concurrent.futures.wait(futures)

        virtual_services_future, destination_rules_future = futures
        for future in futures:
            error = future.exception()
            if error is not None:
                logger.error(f"获取 {namespace} 的 Istio 配置失败: {error}")
                raise error

        snapshot = ConfigSnapshot(
            namespace=namespace,
            service_name=service_name,
            virtual_services=tuple(virtual_services_future.result()),
            destination_rules=tuple(destination_rules_future.result()),
        )
        logger.debug(
            f"配置快照 {namespace}/{service_name or '*'}: "
            f"{len(snapshot.virtual_services)} 个 VirtualService, "
            f"{len(snapshot.destination_rules)} 个 DestinationRule"
        )
        return snapshot


def get_istio_details(client: IstioClient, namespace: str, service_name: str = "") -> ConfigSnapshot:
    """获取命名空间（可选按服务过滤）的 Istio 配置快照"""
    return ConfigSnapshotFetcher(client).fetch(namespace, service_name)
