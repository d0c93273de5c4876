"""测试公共夹具"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
import requests

from mesh_topology.errors import IstioApiError
from mesh_topology.kube.istio_client import IstioClient
from mesh_topology.models.istio_objects import ConfigObject, ConfigObjectKind, ObjectMeta


def make_object(kind: ConfigObjectKind, name: str, namespace: str = "bookinfo",
                spec: Optional[Dict[str, Any]] = None) -> ConfigObject:
    return ConfigObject(kind=kind, meta=ObjectMeta(name=name, namespace=namespace), spec=spec or {})


def make_vs(name: str, spec: Dict[str, Any], namespace: str = "bookinfo") -> ConfigObject:
    return make_object(ConfigObjectKind.VIRTUAL_SERVICE, name, namespace, spec)


def make_dr(name: str, spec: Dict[str, Any], namespace: str = "bookinfo") -> ConfigObject:
    return make_object(ConfigObjectKind.DESTINATION_RULE, name, namespace, spec)


class FakeIstioClient(IstioClient):
    """内存中的控制平面，可按类型注入错误"""

    def __init__(self, objects: Optional[List[ConfigObject]] = None):
        super().__init__()
        self.objects = list(objects or [])
        self.errors: Dict[ConfigObjectKind, Exception] = {}
        self.calls: List[ConfigObjectKind] = []

    def list_objects(self, kind, namespace):
        self.calls.append(kind)
        if kind in self.errors:
            raise self.errors[kind]
        return [o for o in self.objects if o.kind is kind and o.namespace == namespace]

    def get_object(self, kind, namespace, name):
        for o in self.list_objects(kind, namespace):
            if o.name == name:
                return o
        raise IstioApiError(f"{namespace}/{name} not found", collection=kind.value)


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, json_error: bool = False):
        self.payload = payload
        self.status_code = status_code
        self.json_error = json_error
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self.json_error:
            raise ValueError("Expecting value")
        return self.payload


class FakeSession:
    """记录请求并按顺序返回预置响应的 requests.Session 替身"""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.requests: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}
        self.verify = True

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def vector_payload(samples: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {"metric": s["metric"], "value": [1700000000.0, str(s["value"])]} for s in samples
            ],
        },
    }


def traffic_sample(source: str, dest_service: str, dest_version: str = "v1",
                   value: float = 1.0, protocol: str = "http", code: str = "200",
                   namespace: str = "bookinfo") -> Dict[str, Any]:
    return {
        "metric": {
            "source_workload_namespace": namespace,
            "source_workload": f"{source}-v1",
            "source_app": source,
            "source_version": "v1",
            "destination_service_namespace": namespace,
            "destination_service_name": dest_service,
            "destination_workload": f"{dest_service}-{dest_version}",
            "destination_app": dest_service,
            "destination_version": dest_version,
            "request_protocol": protocol,
            "response_code": code,
        },
        "value": value,
    }


@pytest.fixture
def query_time() -> datetime:
    return datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def reviews_dr() -> ConfigObject:
    """reviews 的 DestinationRule：v2 子集带 outlierDetection"""
    return make_dr("reviews", {
        "host": "reviews",
        "subsets": [
            {"name": "v1", "labels": {"version": "v1"}},
            {"name": "v2", "labels": {"version": "v2"},
             "trafficPolicy": {"outlierDetection": {"consecutive5xxErrors": 1}}},
        ],
    })


@pytest.fixture
def reviews_vs() -> ConfigObject:
    return make_vs("reviews", {
        "hosts": ["reviews"],
        "gateways": ["bookinfo-gateway", "mesh"],
        "http": [{
            "route": [
                {"destination": {"host": "reviews", "subset": "v1"}, "weight": 50},
                {"destination": {"host": "reviews", "subset": "v2"}, "weight": 50},
            ],
        }],
    })
