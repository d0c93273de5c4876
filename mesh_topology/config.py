"""
全局配置管理

只有进程入口（命令行、Web 服务）读取这里的配置；匹配算法所需的版本标签名和
身份域名通过 AppenderContext 显式传递。
"""

import json
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict, fields

import yaml

from mesh_topology.errors import ConfigError


DEFAULT_APPENDERS = ["istio", "service_entry", "gateway", "response_time"]


@dataclass
class GlobalConfig:
    """全局配置类"""

    # Prometheus 配置
    prometheus_url: str = "http://localhost:9090"

    # Kubernetes API 配置，未指定 kube_api_url 时使用 in-cluster 配置或 kubeconfig
    kube_api_url: Optional[str] = None
    kube_token: Optional[str] = None
    kube_config_file: Optional[str] = None
    kube_context: Optional[str] = None
    kube_ca_file: Optional[str] = None
    verify_ssl: bool = True
    request_timeout: float = 10.0

    # 离线模式：从 kubectl 导出的 YAML 目录读取配置
    config_dir: Optional[str] = None

    # Istio 配置
    identity_domain: str = "svc.cluster.local"
    version_label: str = "version"

    # 拓扑图配置
    appenders: List[str] = field(default_factory=lambda: list(DEFAULT_APPENDERS))
    telemetry_failure_policy: str = "fail_pipeline"  # fail_pipeline / skip_appender
    default_duration: str = "10m"

    # Web 配置
    web_port: int = 8080

    # 日志配置
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.telemetry_failure_policy not in ("fail_pipeline", "skip_appender"):
            raise ConfigError(f"未知的遥测失败策略: {self.telemetry_failure_policy}")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout 必须大于 0")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'GlobalConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ConfigError(f"未知的配置项: {sorted(unknown)}")
        return cls(**config_dict)

    @classmethod
    def from_file(cls, config_file: str) -> 'GlobalConfig':
        """从 JSON 或 YAML 配置文件加载配置"""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.endswith(('.yaml', '.yml')):
                    config_dict = yaml.safe_load(f) or {}
                else:
                    config_dict = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"无法加载配置文件 {config_file}: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigError(f"配置文件 {config_file} 的顶层必须是对象")
        return cls.from_dict(config_dict)

    def to_file(self, config_file: str):
        """保存配置到JSON文件"""
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return asdict(self)


# 全局配置单例
_global_config: Optional[GlobalConfig] = None


def get_config() -> GlobalConfig:
    """获取全局配置单例"""
    global _global_config
    if _global_config is None:
        _global_config = GlobalConfig()
    return _global_config


def set_config(config: GlobalConfig):
    """设置全局配置"""
    global _global_config
    _global_config = config


def load_config_from_file(config_file: str):
    """从文件加载全局配置"""
    config = GlobalConfig.from_file(config_file)
    set_config(config)
    return config
