"""
无模式文档的安全访问工具

Istio 配置对象的 spec 是任意深度的嵌套字典，任何字段都可能缺失或类型不符。
这里的函数在字段缺失或类型不对时一律返回“空”，而不是抛出异常。
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional


def get_dict(doc: Any, key: str) -> Dict[str, Any]:
    """读取一个字典字段，缺失或类型不符时返回空字典"""
    if not isinstance(doc, Mapping):
        return {}
    value = doc.get(key)
    return value if isinstance(value, Mapping) else {}


def get_list(doc: Any, key: str) -> List[Any]:
    """读取一个列表字段，缺失或类型不符时返回空列表"""
    if not isinstance(doc, Mapping):
        return []
    value = doc.get(key)
    return list(value) if isinstance(value, (list, tuple)) else []


def get_str(doc: Any, key: str) -> Optional[str]:
    """读取一个字符串字段，缺失或类型不符时返回 None"""
    if not isinstance(doc, Mapping):
        return None
    value = doc.get(key)
    return value if isinstance(value, str) else None


def has_key(doc: Any, key: str) -> bool:
    """只判断字段是否存在，不关心取值"""
    return isinstance(doc, Mapping) and key in doc


def iter_dicts(items: List[Any]) -> Iterator[Mapping[str, Any]]:
    """遍历列表中的字典元素，跳过其它类型"""
    for item in items:
        if isinstance(item, Mapping):
            yield item

