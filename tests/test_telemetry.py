"""Prometheus 查询与基础拓扑图构建测试"""

import math

import pytest
import requests

from conftest import FakeResponse, FakeSession, traffic_sample, vector_payload
from mesh_topology.errors import TelemetryUnavailableError
from mesh_topology.graph.builder import build_traffic_graph
from mesh_topology.models.graph_models import NodeType, ServiceIdentity
from mesh_topology.telemetry import PrometheusClient, parse_vector, prom_query


class TestPrometheusClient:

    def test_query_wraps_with_round(self, query_time):
        session = FakeSession([FakeResponse(vector_payload([
            {"metric": {"job": "a"}, "value": 1.5},
        ]))])
        client = PrometheusClient("http://prom:9090/", session=session)
        vector = prom_query(client, "up", query_time)

        request = session.requests[0]
        assert request["url"] == "http://prom:9090/api/v1/query"
        assert request["params"]["query"] == "round(up,0.001)"
        assert request["params"]["time"] == query_time.timestamp()
        assert len(vector) == 1
        assert vector[0].labels == {"job": "a"}
        assert vector[0].value == 1.5
        assert vector[0].timestamp == 1700000000.0

    def test_empty_vector_is_not_an_error(self, query_time):
        session = FakeSession([FakeResponse(vector_payload([]))])
        assert len(PrometheusClient("http://prom", session=session).query("up", query_time)) == 0

    @pytest.mark.parametrize("payload", [
        {"status": "success", "data": {"resultType": "matrix", "result": []}},
        {"status": "success", "data": {"resultType": "scalar", "result": [1, "1"]}},
        {"status": "error", "errorType": "bad_data", "error": "parse error"},
        {"status": "success"},
        ["not", "a", "dict"],
    ])
    def test_non_vector_results_fail(self, payload, query_time):
        session = FakeSession([FakeResponse(payload)])
        with pytest.raises(TelemetryUnavailableError) as excinfo:
            prom_query(PrometheusClient("http://prom", session=session), "up", query_time)
        assert excinfo.value.kind == "telemetry_unavailable"
        assert excinfo.value.query == "round(up,0.001)"

    @pytest.mark.parametrize("response", [
        requests.exceptions.Timeout("timed out"),
        requests.exceptions.ConnectionError("refused"),
        FakeResponse(status_code=500),
        FakeResponse(json_error=True),
    ])
    def test_transport_errors_fail(self, response, query_time):
        session = FakeSession([response])
        with pytest.raises(TelemetryUnavailableError):
            PrometheusClient("http://prom", session=session).query("up", query_time)

    def test_response_is_released(self, query_time):
        response = FakeResponse(vector_payload([]))
        PrometheusClient("http://prom", session=FakeSession([response])).query("up", query_time)
        assert response.closed

    def test_malformed_sample(self):
        with pytest.raises(TelemetryUnavailableError):
            parse_vector({"resultType": "vector", "result": [{"metric": {}, "value": ["x"]}]})

    def test_nan_values_are_parsed(self):
        vector = parse_vector({"resultType": "vector", "result": [{"metric": {}, "value": [1, "NaN"]}]})
        assert math.isnan(vector[0].value)


class TestBuildTrafficGraph:

    def test_accumulates_edges_and_response_codes(self, query_time):
        vector = parse_vector(vector_payload([
            traffic_sample("productpage", "reviews", "v1", 2.0, code="200"),
            traffic_sample("productpage", "reviews", "v1", 0.5, code="503"),
            traffic_sample("productpage", "reviews", "v2", 1.0),
            traffic_sample("reviews", "ratings", "v1", 1.0, protocol="grpc"),
        ])["data"])
        graph = build_traffic_graph(vector, ["bookinfo"], query_time, "5m")

        assert set(graph.nodes) == {
            "bookinfo/workload/productpage-v1",
            "bookinfo/workload/reviews-v1",
            "bookinfo/workload/reviews-v2",
            "bookinfo/workload/ratings-v1",
        }
        edge = graph.edges[("bookinfo/workload/productpage-v1", "bookinfo/workload/reviews-v1", "http")]
        assert edge.weight == pytest.approx(2.5)
        assert edge.response_codes == {"200": 2.0, "503": 0.5}
        assert ("bookinfo/workload/reviews-v1", "bookinfo/workload/ratings-v1", "grpc") in graph.edges

        reviews = graph.nodes["bookinfo/workload/reviews-v2"]
        assert reviews.service == "reviews"
        assert reviews.version == "v2"
        assert reviews.identity == ServiceIdentity("bookinfo", "reviews", "v2")
        assert graph.duration == "5m"
        assert graph.is_complete

    def test_unknown_source_and_service_only_destination(self):
        vector = parse_vector({"resultType": "vector", "result": [{
            "metric": {
                "source_workload": "unknown",
                "source_workload_namespace": "unknown",
                "destination_service_namespace": "bookinfo",
                "destination_service_name": "httpbin.org",
                "destination_workload": "unknown",
            },
            "value": [1, "3"],
        }]})
        graph = build_traffic_graph(vector, ["bookinfo"])
        assert graph.nodes["unknown"].node_type is NodeType.UNKNOWN
        service_node = graph.nodes["bookinfo/service/httpbin.org"]
        assert service_node.node_type is NodeType.SERVICE
        assert service_node.service_name == "httpbin.org"
        assert graph.edges[("unknown", "bookinfo/service/httpbin.org", "http")].weight == 3.0

    def test_nan_samples_are_skipped(self):
        vector = parse_vector({"resultType": "vector", "result": [
            {"metric": traffic_sample("a", "b")["metric"], "value": [1, "NaN"]},
        ]})
        graph = build_traffic_graph(vector)
        assert graph.nodes == {}
        assert graph.edges == {}

    def test_infinite_samples_are_skipped(self):
        vector = parse_vector(vector_payload([
            traffic_sample("productpage", "reviews", "v1", "+Inf"),
            traffic_sample("productpage", "reviews", "v2", 1.0),
        ])["data"])
        graph = build_traffic_graph(vector)
        assert "bookinfo/workload/reviews-v1" not in graph.nodes
        assert list(graph.edges) == [
            ("bookinfo/workload/productpage-v1", "bookinfo/workload/reviews-v2", "http"),
        ]

    def test_source_reported_external_service(self):
        sample = traffic_sample("productpage", "httpbin.org", value=0.5)
        sample["metric"].update({
            "reporter": "source",
            "destination_service_namespace": "unknown",
            "destination_workload": "unknown",
            "destination_app": "unknown",
            "destination_version": "unknown",
        })
        graph = build_traffic_graph(parse_vector(vector_payload([sample])["data"]), ["bookinfo"])

        service_node = graph.nodes["bookinfo/service/httpbin.org"]
        assert service_node.node_type is NodeType.SERVICE
        assert service_node.namespace == "bookinfo"
        assert service_node.version == ""
        edge = graph.edges[("bookinfo/workload/productpage-v1", "bookinfo/service/httpbin.org", "http")]
        assert edge.weight == 0.5
