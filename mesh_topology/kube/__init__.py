"""控制平面配置检索"""

from mesh_topology.kube.istio_client import FileIstioClient, IstioClient, KubeIstioClient
from mesh_topology.kube.details_fetcher import ConfigSnapshotFetcher, get_istio_details

__all__ = [
    "IstioClient",
    "KubeIstioClient",
    "FileIstioClient",
    "ConfigSnapshotFetcher",
    "get_istio_details",
]
