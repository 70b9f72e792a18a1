from pydantic import BaseModel, ConfigDict, Field
from typing import Literal

DEFAULT_TAG_KEYWORDS = (
    "Rust", "JavaScript", "Python", "TypeScript", "React", "Vue", "Node.js",
    "前端", "后端", "全栈", "微服务", "数据库", "算法", "设计模式",
    "性能优化", "安全", "测试", "部署", "Docker", "Kubernetes",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class GeneralConfig(_Frozen):
    author: str | None = None
    default_targets: list[str] = Field(default_factory=lambda: ["all"])
    debounce_seconds: float = Field(default=2.0, gt=0)
    watch_extensions: list[str] = Field(default_factory=lambda: [".md", ".markdown"])
    max_workers: int = Field(default=4, gt=0)
    # Fill a missing description from the body, and missing tags from keywords.
    auto_summary: bool = True
    auto_tags: bool = True
    tag_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_TAG_KEYWORDS))
    max_auto_tags: int = Field(default=5, ge=0)


class RenderConfig(_Frozen):
    default_code_language: str = "text"
    linkify: bool = True
    typographer: bool = False


class WeChatConfig(_Frozen):
    footnote_heading: str = "参考链接"
    max_title_length: int = Field(default=64, gt=0)
    max_content_length: int = Field(default=20000, gt=0)
    styles: dict[str, str] = Field(default_factory=dict)


class ZhihuConfig(_Frozen):
    enable_math: bool = True
    code_theme: str = "github"
    max_title_length: int = Field(default=100, gt=0)
    max_content_length: int = Field(default=30000, gt=0)
    max_tags: int = Field(default=5, ge=0)
    show_tags: bool = False


class OutputConfig(_Frozen):
    output_dir: str = "output"
    create_subdirs: bool = True
    filename_pattern: str = "{title}_{platform}.html"
    backup_enabled: bool = True
    backup_dir: str | None = "backup"


class MarkflowConfig(_Frozen):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    wechat: WeChatConfig = Field(default_factory=WeChatConfig)
    zhihu: ZhihuConfig = Field(default_factory=ZhihuConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
