"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import MarkflowConfig


def load_config(cli_path: str | None = None) -> MarkflowConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./markflow.yaml"),
        Path.home() / ".markflow" / "config.yaml",
    ]

    if cli_path and not Path(cli_path).exists():
        raise ValueError(f"Config file not found: {cli_path}")

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                if not isinstance(raw, dict):
                    raise ValueError(f"Invalid config in {path}: expected a mapping")
                raw = _expand_env_vars(raw)
                return MarkflowConfig(**raw)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e

    return MarkflowConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `markflow config init`
DEFAULT_CONFIG_TEMPLATE = """\
# markflow.yaml

general:
  # author: "Your Name"
  default_targets: ["all"]     # wechat | zhihu | all
  debounce_seconds: 2.0        # quiet period before a changed file is re-rendered
  watch_extensions: [".md", ".markdown"]
  max_workers: 4
  auto_summary: true           # fill a missing description from the first paragraph
  auto_tags: true              # fill missing tags from tag_keywords found in the body
  max_auto_tags: 5
  # tag_keywords: ["Python", "Rust", "Docker"]

# Markdown rendering
render:
  default_code_language: "text"
  linkify: true
  typographer: false

# WeChat official account
wechat:
  footnote_heading: "参考链接"
  max_title_length: 64
  max_content_length: 20000
  # styles:                    # per-tag / per-.class inline style overrides
  #   p: "font-size: 15px; line-height: 1.75;"

# Zhihu
zhihu:
  enable_math: true
  code_theme: "github"
  max_tags: 5
  show_tags: false

# Output
output:
  output_dir: "output"
  create_subdirs: true
  filename_pattern: "{title}_{platform}.html"   # {title} {platform} {stem} {timestamp}
  backup_enabled: true
  backup_dir: "backup"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
