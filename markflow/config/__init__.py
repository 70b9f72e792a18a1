from .loader import load_config
from .models import (
    GeneralConfig,
    MarkflowConfig,
    OutputConfig,
    RenderConfig,
    WeChatConfig,
    ZhihuConfig,
)

__all__ = [
    "GeneralConfig",
    "MarkflowConfig",
    "OutputConfig",
    "RenderConfig",
    "WeChatConfig",
    "ZhihuConfig",
    "load_config",
]
