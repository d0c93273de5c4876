"""工具函数模块"""

from mesh_topology.utils.doc_utils import (
    get_dict,
    get_list,
    get_str,
    has_key,
    iter_dicts,
)

__all__ = [
    "get_dict",
    "get_list",
    "get_str",
    "has_key",
    "iter_dicts",
]
