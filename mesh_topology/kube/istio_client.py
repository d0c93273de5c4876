"""
Istio 控制平面配置检索

IstioClient 定义按命名空间列出 / 按名称获取各类配置对象的接口，并负责按服务名过滤
VirtualService 与 DestinationRule。两个实现：
    KubeIstioClient: 通过 kubernetes 客户端库的 CustomObjectsApi 获取
    FileIstioClient: 从 kubectl get -o yaml 导出的文件目录读取（离线模式）
"""

import os
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

import urllib3
import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from mesh_topology.errors import IstioApiError
from mesh_topology.matching.host_matcher import DEFAULT_IDENTITY_DOMAIN, filter_by_host
from mesh_topology.matching.route_resolver import filter_by_route
from mesh_topology.models.istio_objects import ConfigObject, ConfigObjectKind, ROUTE_PROTOCOLS
from mesh_topology.utils.doc_utils import get_str

logger = logging.getLogger(__name__)


class IstioClient(ABC):
    """控制平面配置检索接口"""

    def __init__(self, identity_domain: str = DEFAULT_IDENTITY_DOMAIN):
        self.identity_domain = identity_domain

    @abstractmethod
    def list_objects(self, kind: ConfigObjectKind, namespace: str) -> List[ConfigObject]:
        """列出命名空间下某类配置对象"""
        pass

    @abstractmethod
    def get_object(self, kind: ConfigObjectKind, namespace: str, name: str) -> ConfigObject:
        """按名称获取单个配置对象"""
        pass

    # VirtualService

    def get_virtual_services(self, namespace: str, service_name: str = "") -> List[ConfigObject]:
        """
        获取命名空间下的 VirtualService

        给定 service_name 时只保留路由目标指向该服务的对象。
        """
        virtual_services = []
        for virtual_service in self.list_objects(ConfigObjectKind.VIRTUAL_SERVICE, namespace):
            if not service_name or filter_by_route(
                    virtual_service.spec, ROUTE_PROTOCOLS, service_name, namespace,
                    None, self.identity_domain):
                virtual_services.append(virtual_service)
        return virtual_services

    def get_virtual_service(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.VIRTUAL_SERVICE, namespace, name)

    # DestinationRule

    def get_destination_rules(self, namespace: str, service_name: str = "") -> List[ConfigObject]:
        """
        获取命名空间下的 DestinationRule

        给定 service_name 时只保留 host 指向该服务的对象。
        """
        destination_rules = []
        for destination_rule in self.list_objects(ConfigObjectKind.DESTINATION_RULE, namespace):
            host = get_str(destination_rule.spec, "host")
            if not service_name or (host is not None and filter_by_host(
                    host, service_name, namespace, self.identity_domain)):
                destination_rules.append(destination_rule)
        return destination_rules

    def get_destination_rule(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.DESTINATION_RULE, namespace, name)

    # Gateway / ServiceEntry

    def get_gateways(self, namespace: str) -> List[ConfigObject]:
        return self.list_objects(ConfigObjectKind.GATEWAY, namespace)

    def get_gateway(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.GATEWAY, namespace, name)

    def get_service_entries(self, namespace: str) -> List[ConfigObject]:
        return self.list_objects(ConfigObjectKind.SERVICE_ENTRY, namespace)

    def get_service_entry(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.SERVICE_ENTRY, namespace, name)

    # QuotaSpec / QuotaSpecBinding

    def get_quota_specs(self, namespace: str) -> List[ConfigObject]:
        return self.list_objects(ConfigObjectKind.QUOTA_SPEC, namespace)

    def get_quota_spec(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.QUOTA_SPEC, namespace, name)

    def get_quota_spec_bindings(self, namespace: str) -> List[ConfigObject]:
        return self.list_objects(ConfigObjectKind.QUOTA_SPEC_BINDING, namespace)

    def get_quota_spec_binding(self, namespace: str, name: str) -> ConfigObject:
        return self.get_object(ConfigObjectKind.QUOTA_SPEC_BINDING, namespace, name)


def _parse_list(kind: ConfigObjectKind, namespace: str, body: Any) -> List[ConfigObject]:
    """解析列表响应，结构不符合预期时抛出 IstioApiError"""
    items = body.get("items") if isinstance(body, Mapping) else None
    if not isinstance(items, list):
        raise IstioApiError(f"{namespace} 未返回 {kind.value} 列表",
                            collection=kind.value, namespace=namespace)
    objects = []
    for item in items:
        if isinstance(item, Mapping) and "kind" not in item:
            item = dict(item, kind=kind.value)
        objects.append(ConfigObject.from_dict(item, default_namespace=namespace))
    return objects


def _parse_object(kind: ConfigObjectKind, namespace: str, name: str, body: Any) -> ConfigObject:
    """解析单对象响应，kind 不一致时抛出 IstioApiError"""
    if not isinstance(body, Mapping) or body.get("kind") != kind.value:
        raise IstioApiError(f"{namespace}/{name} 未返回 {kind.value} 对象",
                            collection=kind.value, namespace=namespace, name=name)
    return ConfigObject.from_dict(body, default_namespace=namespace)


class KubeIstioClient(IstioClient):
    """
    通过 Kubernetes API Server 获取 Istio 配置

    Istio 配置都是自定义资源，使用 CustomObjectsApi 按 group / version / plural 访问。
    """

    def __init__(self,
                 api: Optional[client.CustomObjectsApi] = None,
                 timeout: float = 10.0,
                 identity_domain: str = DEFAULT_IDENTITY_DOMAIN):
        """
        初始化客户端

        Args:
            api: 已完成认证配置的 CustomObjectsApi，默认使用全局默认配置
            timeout: 单次请求超时（秒）
            identity_domain: 集群内部服务域名后缀
        """
        super().__init__(identity_domain)
        self.api = api or client.CustomObjectsApi()
        self.timeout = timeout

    @classmethod
    def from_config(cls, global_config) -> "KubeIstioClient":
        """
        按全局配置创建客户端

        配置了 kube_api_url 时直接使用该地址和 token；否则依次尝试 ServiceAccount
        (in-cluster) 配置和 kubeconfig。
        """
        configuration = client.Configuration()
        if global_config.kube_api_url:
            configuration.host = global_config.kube_api_url.rstrip('/')
            configuration.verify_ssl = global_config.verify_ssl
            if global_config.kube_ca_file:
                configuration.ssl_ca_cert = global_config.kube_ca_file
            if global_config.kube_token:
                token = global_config.kube_token.strip()
                if token.startswith("Bearer "):
                    token = token[7:]
                configuration.api_key = {"authorization": token}
                configuration.api_key_prefix = {"authorization": "Bearer"}
            logger.info(f"使用指定地址访问 Kubernetes: {configuration.host}")
        else:
            try:
                config.load_incluster_config(client_configuration=configuration)
                logger.info("已使用 ServiceAccount 配置初始化 Kubernetes 客户端")
            except config.ConfigException:
                try:
                    config.load_kube_config(
                        config_file=global_config.kube_config_file,
                        context=global_config.kube_context,
                        client_configuration=configuration,
                    )
                except (config.ConfigException, OSError) as e:
                    raise IstioApiError(f"无法加载 Kubernetes 配置: {e}") from e
                logger.info("已从 kubeconfig 初始化 Kubernetes 客户端")

        return cls(
            api=client.CustomObjectsApi(client.ApiClient(configuration)),
            timeout=global_config.request_timeout,
            identity_domain=global_config.identity_domain,
        )

    def _call(self, kind: ConfigObjectKind, namespace: str, name: Optional[str] = None) -> Any:
        logger.debug(f"请求控制平面: {kind.api_group}/{kind.api_version} {kind.plural} "
                     f"{namespace}/{name or '*'}")
        try:
            if name:
                return self.api.get_namespaced_custom_object(
                    kind.api_group, kind.api_version, namespace, kind.plural, name,
                    _request_timeout=self.timeout,
                )
            return self.api.list_namespaced_custom_object(
                kind.api_group, kind.api_version, namespace, kind.plural,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            raise IstioApiError(f"获取 {kind.value} 失败 ({namespace}): {e.status} {e.reason}",
                                collection=kind.value, namespace=namespace, name=name) from e
        except urllib3.exceptions.HTTPError as e:
            raise IstioApiError(f"获取 {kind.value} 失败 ({namespace}): {e}",
                                collection=kind.value, namespace=namespace, name=name) from e

    def list_objects(self, kind: ConfigObjectKind, namespace: str) -> List[ConfigObject]:
        return _parse_list(kind, namespace, self._call(kind, namespace))

    def get_object(self, kind: ConfigObjectKind, namespace: str, name: str) -> ConfigObject:
        return _parse_object(kind, namespace, name, self._call(kind, namespace, name))


class FileIstioClient(IstioClient):
    """
    从目录中的 YAML 文件读取 Istio 配置

    支持多文档 YAML，也支持 kind: List 形式的 kubectl 导出。目录在首次访问时加载。
    """

    def __init__(self, config_dir: str, identity_domain: str = DEFAULT_IDENTITY_DOMAIN):
        super().__init__(identity_domain)
        self.config_dir = config_dir
        self._items: Optional[List[Dict[str, Any]]] = None
        self._lock = threading.Lock()

    def _load(self) -> List[Dict[str, Any]]:
        with self._lock:
            if self._items is None:
                self._items = self._read_dir()
            return self._items

    def _read_dir(self) -> List[Dict[str, Any]]:
        if not os.path.isdir(self.config_dir):
            raise IstioApiError(f"配置目录不存在: {self.config_dir}")

        items: List[Dict[str, Any]] = []
        for filename in sorted(os.listdir(self.config_dir)):
            if not filename.endswith(('.yaml', '.yml')):
                continue
            path = os.path.join(self.config_dir, filename)
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    documents = list(yaml.safe_load_all(f))
            except (OSError, yaml.YAMLError) as e:
                raise IstioApiError(f"读取配置文件 {path} 失败: {e}") from e
            for document in documents:
                if not isinstance(document, dict):
                    continue
                kind = document.get("kind")
                if isinstance(kind, str) and kind.endswith("List"):
                    items.extend(i for i in document.get("items") or [] if isinstance(i, dict))
                else:
                    items.append(document)
        logger.info(f"从 {self.config_dir} 加载了 {len(items)} 个配置对象")
        return items

    def _matching(self, kind: ConfigObjectKind, namespace: str) -> List[ConfigObject]:
        objects = []
        for item in self._load():
            if item.get("kind") != kind.value:
                continue
            metadata = item.get("metadata")
            item_namespace = metadata.get("namespace", "default") if isinstance(metadata, dict) else "default"
            if item_namespace == namespace:
                objects.append(ConfigObject.from_dict(item, default_namespace=namespace))
        return objects

    def list_objects(self, kind: ConfigObjectKind, namespace: str) -> List[ConfigObject]:
        return self._matching(kind, namespace)

    def get_object(self, kind: ConfigObjectKind, namespace: str, name: str) -> ConfigObject:
        for config_object in self._matching(kind, namespace):
            if config_object.name == name:
                return config_object
        raise IstioApiError(f"{namespace}/{name} 未返回 {kind.value} 对象",
                            collection=kind.value, namespace=namespace, name=name)
