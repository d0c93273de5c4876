"""
Web 服务

提供拓扑图和 Istio 配置快照的 HTTP 接口
"""

import logging
from datetime import datetime
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from mesh_topology.config import GlobalConfig, get_config
from mesh_topology.errors import IstioApiError, PipelineError, TelemetryUnavailableError
from mesh_topology.graph.serializer import GraphSerializer
from mesh_topology.graph.service import GraphService

logger = logging.getLogger(__name__)


def create_app(config: Optional[GlobalConfig] = None,
               graph_service: Optional[GraphService] = None) -> Flask:
    """
    创建 Flask 应用

    Args:
        config: 全局配置，默认使用 get_config()
        graph_service: 可注入的拓扑图服务
    """
    config = config or get_config()
    service = graph_service or GraphService(config)

    app = Flask(__name__)
    CORS(app)

    @app.route('/api/health')
    def health():
        return jsonify({"status": "ok"})

    @app.route('/api/namespaces/<namespace>/graph')
    def get_graph(namespace):
        """获取命名空间的拓扑图"""
        namespaces = [namespace] + [
            ns for ns in request.args.get('namespaces', '').split(',') if ns and ns != namespace
        ]
        duration = request.args.get('duration') or config.default_duration
        query_time = None
        if request.args.get('queryTime'):
            try:
                query_time = datetime.fromtimestamp(int(request.args['queryTime']))
            except (ValueError, OverflowError, OSError):
                return jsonify({"error": "queryTime 必须是 Unix 时间戳"}), 400

        graph = service.build_graph(namespaces, duration, query_time)
        return jsonify(GraphSerializer(graph).generate())

    @app.route('/api/namespaces/<namespace>/istio')
    def get_istio_details(namespace):
        """获取命名空间（可按 service 过滤）的 VirtualService 和 DestinationRule"""
        snapshot = service.istio_details(namespace, request.args.get('service', ''))
        return jsonify(snapshot.to_dict())

    @app.errorhandler(PipelineError)
    def handle_pipeline_error(e):
        return jsonify(e.to_dict()), 503

    @app.errorhandler(TelemetryUnavailableError)
    def handle_telemetry_error(e):
        logger.error(f"遥测不可用: {e}")
        return jsonify({"error": str(e), "kind": e.kind}), 503

    @app.errorhandler(IstioApiError)
    def handle_istio_error(e):
        logger.error(f"Istio 配置检索失败: {e}")
        return jsonify({"error": str(e), "kind": e.kind, "collection": e.collection}), 502

    return app


def run_server(config: GlobalConfig, port: Optional[int] = None):
    """启动Web服务器"""
    app = create_app(config)
    port = port or config.web_port
    logger.info(f"启动Web服务器: http://0.0.0.0:{port}")
    app.run(host='0.0.0.0', port=port)
