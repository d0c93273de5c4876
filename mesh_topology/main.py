#!/usr/bin/env python3
"""
服务网格拓扑图 - 主入口

统一的命令行界面，支持构建拓扑图、查看 Istio 配置快照和启动 Web 服务
"""

import sys
import json
import argparse
import logging
from typing import Optional

from mesh_topology.config import get_config, load_config_from_file
from mesh_topology.errors import MeshTopologyError, PipelineError
from mesh_topology.graph.serializer import GraphSerializer
from mesh_topology.graph.service import GraphService


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """配置日志"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers
    )


def run_graph(service: GraphService, namespaces, duration: Optional[str], output: Optional[str]):
    """构建拓扑图并输出"""
    graph = service.build_graph(namespaces, duration)
    serializer = GraphSerializer(graph)
    if output:
        serializer.save_to_file(output)
    else:
        json.dump(serializer.generate(), sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")


def run_details(service: GraphService, namespace: str, service_name: str):
    """输出 Istio 配置快照"""
    snapshot = service.istio_details(namespace, service_name)
    json.dump(snapshot.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(
        description="服务网格拓扑图",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  # 构建 bookinfo 命名空间的拓扑图
  python -m mesh_topology.main --mode graph --namespace bookinfo --duration 5m

  # 查看 reviews 服务的 VirtualService / DestinationRule
  python -m mesh_topology.main --mode details --namespace bookinfo --service reviews

  # 启动Web服务
  python -m mesh_topology.main --mode web --port 8080
        """
    )

    parser.add_argument(
        "--mode",
        choices=["graph", "details", "web"],
        default="graph",
        help="运行模式: graph(构建拓扑图), details(Istio配置快照), web(Web服务器)"
    )
    parser.add_argument(
        "--namespace",
        action="append",
        help="Kubernetes命名空间，可重复指定 (默认: default)"
    )
    parser.add_argument("--service", type=str, default="", help="按服务名过滤 (details 模式)")
    parser.add_argument("--duration", type=str, help="流量统计时间窗口，如 10m")
    parser.add_argument("--output", type=str, help="拓扑图输出文件路径")
    parser.add_argument("--config", type=str, help="配置文件路径 (JSON/YAML格式)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别 (默认取配置文件)"
    )
    parser.add_argument("--log-file", type=str, help="日志文件路径")
    parser.add_argument("--port", type=int, help="Web服务器端口")

    args = parser.parse_args(argv)

    try:
        config = load_config_from_file(args.config) if args.config else get_config()
    except MeshTopologyError as e:
        setup_logging()
        logging.getLogger(__name__).error(f"❌ {e}")
        return 2

    setup_logging(args.log_level or config.log_level, args.log_file or config.log_file)
    logger = logging.getLogger(__name__)
    namespaces = args.namespace or ["default"]

    try:
        if args.mode == "web":
            from mesh_topology.web.server import run_server
            run_server(config, args.port)
            return 0

        service = GraphService(config)
        if args.mode == "graph":
            run_graph(service, namespaces, args.duration, args.output)
        elif args.mode == "details":
            run_details(service, namespaces[0], args.service)

        logger.info("✅ 任务执行成功")
        return 0

    except PipelineError as e:
        logger.error(f"❌ 拓扑图构建失败: appender={e.appender}, 集合={e.collection}: {e.cause}")
        return 1
    except MeshTopologyError as e:
        logger.error(f"❌ 任务执行失败 ({e.kind}): {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
