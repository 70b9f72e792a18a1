"""Writes adapted HTML to disk, one file per target."""

from __future__ import annotations

import html
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from markflow.config.models import OutputConfig
from markflow.core.content import Content
from markflow.errors import ConfigError, OutputError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r'[/\\?%*:|"<>\x00-\x1f]')


@runtime_checkable
class OutputSink(Protocol):
    """Decides where adapted HTML for one target goes and writes it."""

    def write(self, target: str, html: str, content: Content) -> Path: ...


def _sanitize_filename(name: str) -> str:
    """Replace characters that are invalid on common filesystems."""
    name = _UNSAFE_CHARS_RE.sub("_", name).strip()
    name = name.replace("..", "_")
    if not name or name.strip(".") == "":
        name = "_untitled"
    return name


class HtmlFileWriter:
    """Writes adapted HTML under ``output_dir``.

    Handles filename patterns, per-platform subdirectories, backup of a file
    about to be overwritten, and dry-run mode.
    """

    def __init__(self, config: OutputConfig, *, dry_run: bool = False) -> None:
        self.config = config
        self.base_dir = Path(config.output_dir)
        self.dry_run = dry_run

    def destination(self, target: str, content: Content, now: datetime | None = None) -> Path:
        now = now or datetime.now(timezone.utc)
        fields = {
            "title": content.title,
            "platform": target,
            "stem": Path(content.source_path).stem,
            "timestamp": now.strftime("%Y%m%d_%H%M%S"),
        }
        try:
            filename = self.config.filename_pattern.format_map(fields)
        except (KeyError, ValueError) as exc:
            raise ConfigError(f"invalid filename_pattern {self.config.filename_pattern!r}: {exc}") from exc
        filename = _sanitize_filename(filename)
        if self.config.create_subdirs:
            return self.base_dir / target / filename
        return self.base_dir / filename

    def write(self, target: str, html: str, content: Content) -> Path:
        dest = self.destination(target, content)

        if self.dry_run:
            logger.debug("dry-run: would write %s", dest)
            return dest

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if dest.exists() and self.config.backup_enabled and self.config.backup_dir:
                self._backup(dest)
            dest.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise OutputError(str(dest), exc) from exc

        logger.info("wrote %s (%d bytes)", dest, len(html.encode("utf-8")))
        return dest

    # -- backups -------------------------------------------------------------

    def _backup(self, path: Path) -> Path:
        backup_dir = Path(self.config.backup_dir)
        backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        backup_path = backup_dir / f"{stamp}_{path.name}"
        shutil.copy2(path, backup_path)
        logger.debug("backed up %s to %s", path, backup_path)
        return backup_path


def preview_document(fragment: str, stylesheet: str, title: str) -> str:
    """Wrap an adapted fragment in a standalone page for local preview."""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="zh-CN">\n<head>\n<meta charset="utf-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
        f"<title>{html.escape(title)}</title>\n"
        f"<style>\n{stylesheet}\n</style>\n"
        "</head>\n<body>\n"
        f"{fragment}\n"
        "</body>\n</html>\n"
    )
