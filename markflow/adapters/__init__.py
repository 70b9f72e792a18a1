"""Platform adapters: canonical HTML -> platform-compliant HTML."""

from markflow.adapters.base import PlatformAdapter
from markflow.adapters.registry import ALL, AdapterRegistry
from markflow.adapters.wechat import WeChatAdapter
from markflow.adapters.zhihu import ZhihuAdapter

__all__ = [
    "ALL",
    "AdapterRegistry",
    "PlatformAdapter",
    "WeChatAdapter",
    "ZhihuAdapter",
]
