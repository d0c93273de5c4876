"""Appender 流水线与序列化测试"""

import json

import pytest

from conftest import FakeIstioClient
from mesh_topology.errors import IstioApiError, MeshTopologyError, PipelineError, TelemetryUnavailableError
from mesh_topology.graph.pipeline import (
    Appender, AppenderContext, AppenderPipeline, AppenderRegistry, PipelineState,
    TelemetryFailurePolicy,
)
from mesh_topology.graph.serializer import GraphSerializer
from mesh_topology.models.graph_models import GraphNode, NodeType, TrafficGraph
from mesh_topology.models.istio_objects import ConfigObjectKind


class RecordingAppender(Appender):
    def __init__(self, name, log, error=None):
        self.name = name
        self.log = log
        self.error = error

    def append(self, graph, context):
        self.log.append(self.name)
        if self.error is not None:
            raise self.error
        graph.nodes[self.name] = GraphNode(node_id=self.name, node_type=NodeType.APP, namespace="bookinfo")
        return graph


@pytest.fixture
def context(query_time):
    return AppenderContext(namespaces=("bookinfo",), query_time=query_time, istio_client=FakeIstioClient())


class TestAppenderPipeline:

    def test_runs_appenders_in_order(self, context):
        log = []
        pipeline = AppenderPipeline([RecordingAppender("a", log), RecordingAppender("b", log)])
        assert pipeline.state is PipelineState.IDLE
        graph = pipeline.run(TrafficGraph(), context)
        assert log == ["a", "b"]
        assert set(graph.nodes) == {"a", "b"}
        assert pipeline.state is PipelineState.COMPLETED
        assert graph.is_complete

    def test_first_failure_stops_the_pipeline(self, context):
        log = []
        cause = IstioApiError("forbidden", collection="Gateway", namespace="bookinfo")
        pipeline = AppenderPipeline([
            RecordingAppender("a", log),
            RecordingAppender("gateway", log, error=cause),
            RecordingAppender("c", log),
        ])
        with pytest.raises(PipelineError) as excinfo:
            pipeline.run(TrafficGraph(), context)

        error = excinfo.value
        assert log == ["a", "gateway"]
        assert error.appender == "gateway"
        assert error.collection == "Gateway"
        assert error.kind == "istio_api_unavailable"
        assert error.__cause__ is cause
        assert pipeline.state is PipelineState.FAILED
        assert pipeline.failed_appender == "gateway"
        assert error.to_dict()["appender"] == "gateway"

    def test_unexpected_exceptions_are_wrapped(self, context):
        pipeline = AppenderPipeline([RecordingAppender("boom", [], error=KeyError("x"))])
        with pytest.raises(PipelineError) as excinfo:
            pipeline.run(TrafficGraph(), context)
        assert excinfo.value.kind == "pipeline_failed"
        assert excinfo.value.collection is None

    def test_telemetry_failure_fails_by_default(self, context):
        pipeline = AppenderPipeline([RecordingAppender("rt", [], error=TelemetryUnavailableError("down"))])
        with pytest.raises(PipelineError) as excinfo:
            pipeline.run(TrafficGraph(), context)
        assert excinfo.value.kind == "telemetry_unavailable"

    def test_telemetry_failure_can_skip_appender(self, context):
        log = []
        pipeline = AppenderPipeline(
            [RecordingAppender("rt", log, error=TelemetryUnavailableError("down")), RecordingAppender("b", log)],
            TelemetryFailurePolicy.SKIP_APPENDER,
        )
        graph = pipeline.run(TrafficGraph(), context)
        assert log == ["rt", "b"]
        assert graph.skipped_appenders == ["rt"]
        assert not graph.is_complete
        assert pipeline.state is PipelineState.COMPLETED

    def test_skip_policy_does_not_hide_config_errors(self, context):
        pipeline = AppenderPipeline(
            [RecordingAppender("istio", [], error=IstioApiError("down"))],
            TelemetryFailurePolicy.SKIP_APPENDER,
        )
        with pytest.raises(PipelineError):
            pipeline.run(TrafficGraph(), context)

    def test_cannot_run_twice(self, context):
        pipeline = AppenderPipeline([])
        pipeline.run(TrafficGraph(), context)
        with pytest.raises(MeshTopologyError):
            pipeline.run(TrafficGraph(), context)


class TestAppenderContext:

    def test_snapshot_is_fetched_once_per_namespace(self, query_time, reviews_vs):
        client = FakeIstioClient([reviews_vs])
        context = AppenderContext(namespaces=("bookinfo",), query_time=query_time, istio_client=client)
        first = context.snapshot("bookinfo")
        second = context.snapshot("bookinfo")
        assert first is second
        assert first.virtual_services == (reviews_vs,)
        assert client.calls.count(ConfigObjectKind.VIRTUAL_SERVICE) == 1


class TestAppenderRegistry:

    def test_create_by_name(self):
        registry = AppenderRegistry()

        @registry.register
        class Noop(Appender):
            name = "noop"

            def append(self, graph, context):
                return graph

        assert registry.names() == ["noop"]
        assert isinstance(registry.create(["noop"])[0], Noop)
        with pytest.raises(MeshTopologyError):
            registry.create(["noop", "missing"])


class TestGraphSerializer:

    def test_generate(self, query_time, tmp_path):
        graph = TrafficGraph(namespaces=["bookinfo"], query_time=query_time, duration="5m")
        graph.add_node(GraphNode("a", NodeType.WORKLOAD, "bookinfo", workload="a-v1"))
        external = graph.add_node(GraphNode("b", NodeType.SERVICE, "bookinfo", service="httpbin.org"))
        external.metadata["isServiceEntry"] = "MESH_EXTERNAL"
        graph.add_traffic("a", "b", "http", 3.0, "200")
        edge = graph.add_traffic("a", "b", "http", 1.0, "503")
        edge.metadata["responseTime"] = 12.5
        graph.skipped_appenders.append("response_time")

        data = GraphSerializer(graph).generate()
        assert data["metadata"]["totalNodes"] == 2
        assert data["metadata"]["complete"] is False
        assert data["metadata"]["skippedAppenders"] == ["response_time"]
        assert data["metadata"]["queryTime"] == "2024-01-01T12:00:00"

        nodes = {n["id"]: n for n in data["nodes"]}
        assert nodes["b"]["shape"] == "square"
        assert nodes["b"]["annotations"] == {"isServiceEntry": "MESH_EXTERNAL"}
        assert nodes["a"]["shape"] == "circle"

        [edge_data] = data["edges"]
        assert edge_data["rate"] == 4.0
        assert edge_data["errorRate"] == 0.25
        assert edge_data["annotations"] == {"responseTime": 12.5}

        path = tmp_path / "out" / "graph.json"
        GraphSerializer(graph).save_to_file(str(path))
        assert json.loads(path.read_text(encoding="utf-8"))["metadata"]["duration"] == "5m"

    def test_annotations_cannot_replace_core_fields(self):
        graph = TrafficGraph(namespaces=["bookinfo"])
        graph.add_node(GraphNode("a", NodeType.WORKLOAD, "bookinfo", workload="a-v1"))
        node = graph.add_node(GraphNode("b", NodeType.WORKLOAD, "bookinfo", workload="b-v1"))
        node.metadata["id"] = "hijacked"
        edge = graph.add_traffic("a", "b", "http", 1.0, "200")
        edge.metadata.update({"source": "hijacked", "rate": 99})

        data = GraphSerializer(graph).generate()
        assert [n["id"] for n in data["nodes"]] == ["a", "b"]
        assert data["nodes"][1]["annotations"] == {"id": "hijacked"}
        [edge_data] = data["edges"]
        assert edge_data["source"] == "a"
        assert edge_data["rate"] == 1.0
        assert edge_data["annotations"] == {"source": "hijacked", "rate": 99}
