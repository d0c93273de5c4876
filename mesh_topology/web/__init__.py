"""Web 服务"""

from mesh_topology.web.server import create_app, run_server

__all__ = ["create_app", "run_server"]
