"""
工具函数模块
"""

from typing import Optional


def alias_key(alias: Optional[str]) -> str:
    """别名比较键：去除首尾空白后不区分大小写"""
    if not alias:
        return ""
    return alias.strip().casefold()


def same_alias(left: Optional[str], right: Optional[str]) -> bool:
    """判断两个别名是否指向同一玩家"""
    return bool(left) and bool(right) and alias_key(left) == alias_key(right)
