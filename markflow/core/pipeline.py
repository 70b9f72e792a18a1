"""Runs one source through metadata, render and adapt, then hands it to a sink."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from markflow.adapters.registry import AdapterRegistry
from markflow.config.models import MarkflowConfig
from markflow.core.content import AdapterResult, Content, Diagnostic, Target, extract_tags
from markflow.core.metadata import parse_preamble
from markflow.core.renderer import MarkdownRenderer
from markflow.errors import MarkflowError
from markflow.output.writer import OutputSink

logger = logging.getLogger(__name__)

MEMORY_SOURCE = "<memory>"


class Stage(str, Enum):
    start = "start"
    metadata_parsed = "metadata_parsed"
    rendered = "rendered"
    adapted = "adapted"
    done = "done"
    failed = "failed"


class ProcessResult(BaseModel):
    """Everything one run produced, including what went wrong."""

    source_path: str
    stage: Stage = Stage.start
    failed_stage: str | None = None
    content: Content | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    outputs: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.stage is Stage.done

    @property
    def results(self) -> dict[str, AdapterResult]:
        return self.content.adapted if self.content is not None else {}

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    def _fail(self, stage: str, message: str) -> ProcessResult:
        self.stage = Stage.failed
        self.failed_stage = stage
        self.diagnostics.append(Diagnostic(stage=stage, message=message, severity="error"))
        return self


class Pipeline:
    """Drives one Content through parse, render and adapt.

    A Pipeline holds no per-run state: the renderer and registry are built
    once and only read afterwards, so ``process`` may be called from many
    threads at once.
    """

    def __init__(
        self,
        config: MarkflowConfig | None = None,
        registry: AdapterRegistry | None = None,
    ) -> None:
        self.config = config or MarkflowConfig()
        self.registry = registry or AdapterRegistry(self.config)
        self.renderer = MarkdownRenderer(self.config.render)

    def process(
        self,
        source_path: str | Path,
        targets: Iterable[str | Target],
        sink: OutputSink | None = None,
    ) -> ProcessResult:
        """Run the whole pipeline for one file on disk.

        Raises UnknownTargetError before any file is touched.
        """
        resolved = self.registry.resolve(targets)
        path = Path(source_path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("cannot read %s: %s", path, exc)
            return ProcessResult(source_path=str(path))._fail("read", f"cannot read {path}: {exc}")
        return self._run(text, resolved, str(path), sink)

    def process_text(
        self,
        text: str,
        targets: Iterable[str | Target],
        source_path: str = MEMORY_SOURCE,
        sink: OutputSink | None = None,
    ) -> ProcessResult:
        return self._run(text, self.registry.resolve(targets), source_path, sink)

    def process_many(
        self,
        paths: Iterable[str | Path],
        targets: Iterable[str | Target],
        sink: OutputSink | None = None,
    ) -> Iterator[ProcessResult]:
        """Process files concurrently; yields results as they complete."""
        resolved = self.registry.resolve(targets)
        with ThreadPoolExecutor(max_workers=self.config.general.max_workers) as pool:
            futures = [pool.submit(self.process, p, resolved, sink) for p in paths]
            for future in as_completed(futures):
                yield future.result()

    # -- stages ----------------------------------------------------------------

    def _run(
        self,
        text: str,
        targets: list[Target],
        source_path: str,
        sink: OutputSink | None,
    ) -> ProcessResult:
        result = ProcessResult(source_path=source_path)

        parsed = parse_preamble(text)
        metadata = parsed.metadata
        if metadata.author is None and self.config.general.author:
            metadata = metadata.model_copy(update={"author": self.config.general.author})
        content = Content(source_path=source_path, metadata=metadata, body=parsed.body)
        self._enrich(content)
        result.content = content
        result.diagnostics.extend(parsed.warnings)
        result.stage = Stage.metadata_parsed

        rendered = self.renderer.render(content.body)
        result.diagnostics.extend(rendered.warnings)
        if rendered.failed:
            logger.error("render failed for %s", source_path)
            result.stage = Stage.failed
            result.failed_stage = "render"
            return result
        content.set_canonical_html(rendered.html)
        result.stage = Stage.rendered

        canonical = content.canonical_html or ""
        for target in targets:
            adapted = self.registry.adapt(target, canonical, content.metadata)
            content.adapted[target.value] = adapted
            result.diagnostics.extend(adapted.notices)
            if adapted.error is not None:
                logger.warning("%s: %s", source_path, adapted.error.message)
                result.diagnostics.append(adapted.error)
        result.stage = Stage.adapted

        if sink is not None:
            self._write(result, content, sink)

        result.stage = Stage.done
        logger.info(
            "processed %s: %d/%d targets ok, %d diagnostics",
            source_path,
            sum(1 for r in content.adapted.values() if r.ok),
            len(targets),
            len(result.diagnostics),
        )
        return result

    def _enrich(self, content: Content) -> None:
        """Fill description and tags the author left out."""
        general = self.config.general
        update: dict = {}
        if general.auto_summary and content.metadata.description is None:
            summary = content.summary
            if summary:
                update["description"] = summary
        if general.auto_tags and not content.metadata.tags:
            tags = extract_tags(content.body, general.tag_keywords, general.max_auto_tags)
            if tags:
                update["tags"] = tags
        if update:
            logger.debug("%s: filled %s", content.source_path, ", ".join(update))
            content.metadata = content.metadata.model_copy(update=update)

    def _write(self, result: ProcessResult, content: Content, sink: OutputSink) -> None:
        for name, adapted in content.adapted.items():
            if not adapted.ok or adapted.html is None:
                continue
            try:
                written = sink.write(name, adapted.html, content)
            except (MarkflowError, OSError) as exc:
                logger.error("output for %s failed: %s", name, exc)
                result.diagnostics.append(
                    Diagnostic(stage="output", message=str(exc), severity="error", target=name)
                )
                continue
            result.outputs[name] = str(written)
