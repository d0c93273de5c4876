"""
主机名匹配

判断配置中的 host 字面值是否指向给定的 (service, namespace)。
FQDN 的命名规则见 Kubernetes DNS 规范：
https://github.com/kubernetes/dns/blob/master/docs/specification.md
"""

DEFAULT_IDENTITY_DOMAIN = "svc.cluster.local"


def filter_by_host(host: str, service_name: str, namespace: str,
                   identity_domain: str = DEFAULT_IDENTITY_DOMAIN) -> bool:
    """
    host 是否为以下四种形式之一（大小写敏感，不支持通配符）：

        <service>
        <service>.<namespace>
        <service>.<namespace>.svc
        <service>.<namespace>.<identity_domain>
    """
    if host == service_name:
        return True
    if host == f"{service_name}.{namespace}":
        return True
    if host == f"{service_name}.{namespace}.svc":
        return True
    return host == f"{service_name}.{namespace}.{identity_domain}"
