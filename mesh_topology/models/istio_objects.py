"""
Istio 配置对象模型

用一个带 kind 标签的封闭类型表示所有路由配置对象，spec 保留为无模式的嵌套文档，
通过 mesh_topology.utils.doc_utils 的安全访问函数读取。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from mesh_topology.errors import IstioApiError
from mesh_topology.utils.doc_utils import get_dict, get_list, get_str, iter_dicts


class ConfigObjectKind(Enum):
    """配置对象类型"""
    VIRTUAL_SERVICE = "VirtualService"
    DESTINATION_RULE = "DestinationRule"
    GATEWAY = "Gateway"
    SERVICE_ENTRY = "ServiceEntry"
    QUOTA_SPEC = "QuotaSpec"
    QUOTA_SPEC_BINDING = "QuotaSpecBinding"

    @property
    def api_group(self) -> str:
        return _API_RESOURCES[self][0]

    @property
    def api_version(self) -> str:
        return _API_RESOURCES[self][1]

    @property
    def plural(self) -> str:
        return _API_RESOURCES[self][2]

    @classmethod
    def from_kind(cls, kind: str) -> "ConfigObjectKind":
        for member in cls:
            if member.value == kind:
                return member
        raise IstioApiError(f"不支持的配置对象类型: {kind}", collection=kind)


# kind -> (group, version, plural)
_API_RESOURCES = {
    ConfigObjectKind.VIRTUAL_SERVICE: ("networking.istio.io", "v1alpha3", "virtualservices"),
    ConfigObjectKind.DESTINATION_RULE: ("networking.istio.io", "v1alpha3", "destinationrules"),
    ConfigObjectKind.GATEWAY: ("networking.istio.io", "v1alpha3", "gateways"),
    ConfigObjectKind.SERVICE_ENTRY: ("networking.istio.io", "v1alpha3", "serviceentries"),
    ConfigObjectKind.QUOTA_SPEC: ("config.istio.io", "v1alpha2", "quotaspecs"),
    ConfigObjectKind.QUOTA_SPEC_BINDING: ("config.istio.io", "v1alpha2", "quotaspecbindings"),
}

# VirtualService 中按顺序检查的路由协议
ROUTE_PROTOCOLS = ("http", "tcp")


def freeze_document(value: Any) -> Any:
    """递归冻结文档：字典转为只读映射，列表转为元组"""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_document(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_document(v) for v in value)
    return value


def thaw_document(value: Any) -> Any:
    """freeze_document 的逆操作，得到可 JSON 序列化的普通字典和列表"""
    if isinstance(value, Mapping):
        return {k: thaw_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw_document(v) for v in value]
    return value


@dataclass(frozen=True)
class ObjectMeta:
    """对象元数据"""
    name: str
    namespace: str
    labels: Mapping[str, str] = field(default_factory=dict)
    resource_version: Optional[str] = None


@dataclass(frozen=True)
class ConfigObject:
    """
    路由配置对象

    创建后不再修改，可以在多个 appender 之间只读共享。
    """
    kind: ConfigObjectKind
    meta: ObjectMeta
    spec: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # 逐层复制并冻结，调用方持有的原始字典之后被修改也不会影响该对象
        object.__setattr__(self, "spec", freeze_document(self.spec or {}))
        object.__setattr__(self, "meta", replace(self.meta, labels=freeze_document(self.meta.labels or {})))

    @property
    def object_meta(self) -> ObjectMeta:
        return self.meta

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def namespace(self) -> str:
        return self.meta.namespace

    @classmethod
    def from_dict(cls, item: Mapping[str, Any], default_namespace: str = "default") -> "ConfigObject":
        """
        从 Kubernetes 风格的对象字典创建

        Args:
            item: 包含 kind / metadata / spec 的字典
            default_namespace: metadata 中缺少命名空间时使用的值

        Returns:
            配置对象
        """
        if not isinstance(item, Mapping):
            raise IstioApiError(f"配置对象格式错误: {type(item).__name__}")
        kind = ConfigObjectKind.from_kind(get_str(item, "kind") or "")
        metadata = get_dict(item, "metadata")
        meta = ObjectMeta(
            name=get_str(metadata, "name") or "",
            namespace=get_str(metadata, "namespace") or default_namespace,
            labels=dict(get_dict(metadata, "labels")),
            resource_version=get_str(metadata, "resourceVersion"),
        )
        return cls(kind=kind, meta=meta, spec=get_dict(item, "spec"))

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于JSON序列化）"""
        return {
            "kind": self.kind.value,
            "metadata": {
                "name": self.meta.name,
                "namespace": self.meta.namespace,
                "labels": dict(self.meta.labels),
                "resourceVersion": self.meta.resource_version,
            },
            "spec": thaw_document(self.spec),
        }


@dataclass(frozen=True)
class RouteDestination:
    """VirtualService 路由中的一个目标"""
    protocol: str
    host: str
    subset: Optional[str] = None


def iter_route_destinations(spec: Any, protocol: str) -> Iterator[RouteDestination]:
    """
    遍历 spec[protocol][*].route[*].destination

    任意一层缺失或类型不符的分支都会被跳过。
    """
    for route_entry in iter_dicts(get_list(spec, protocol)):
        for weighted in iter_dicts(get_list(route_entry, "route")):
            destination = get_dict(weighted, "destination")
            host = get_str(destination, "host")
            if host is None:
                continue
            yield RouteDestination(
                protocol=protocol,
                host=host,
                subset=get_str(destination, "subset"),
            )
