"""Shared test fixtures for MarkFlow."""

from pathlib import Path

import pytest

from markflow.adapters import AdapterRegistry
from markflow.config.models import MarkflowConfig, OutputConfig
from markflow.core.content import Content, Metadata
from markflow.core.pipeline import Pipeline
from markflow.core.renderer import MarkdownRenderer
from markflow.output import HtmlFileWriter


SAMPLE_ARTICLE = """\
---
title: 深入理解 Markdown
author: Alice
tags: markdown, publishing
cover: https://img.example.com/cover.png
series: tooling
---

# 深入理解 Markdown

Markdown is *simple*. See [the guide](https://commonmark.org) and
[GitHub](https://github.com).

| Name | Value |
| ---- | ----- |
| a    | 1     |

- [x] done
- [ ] todo

Inline math $E=mc^2$ here.

$$
\\int_0^1 x\\,dx
$$

```python
print("hi")
```

![diagram](https://img.example.com/d.png)

A claim[^1].

[^1]: Source of the claim.
"""


@pytest.fixture
def sample_config():
    return MarkflowConfig()


@pytest.fixture
def renderer(sample_config):
    return MarkdownRenderer(sample_config.render)


@pytest.fixture
def registry(sample_config):
    return AdapterRegistry(sample_config)


@pytest.fixture
def pipeline(sample_config, registry):
    return Pipeline(sample_config, registry)


@pytest.fixture
def sample_article():
    return SAMPLE_ARTICLE


@pytest.fixture
def sample_content():
    return Content(
        source_path="posts/hello.md",
        metadata=Metadata(title="Hello World", tags=["a", "b"]),
        body="# Hello World\n\nSome text.\n",
    )


@pytest.fixture
def output_config(tmp_path: Path):
    return OutputConfig(
        output_dir=str(tmp_path / "out"),
        backup_dir=str(tmp_path / "backup"),
    )


@pytest.fixture
def writer(output_config):
    return HtmlFileWriter(output_config)
