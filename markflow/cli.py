"""CLI entry point for MarkFlow."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from markflow.config import MarkflowConfig, load_config
from markflow.config.loader import DEFAULT_CONFIG_TEMPLATE
from markflow.core.content import Target
from markflow.core.pipeline import Pipeline, ProcessResult
from markflow.errors import ConfigError, WatchError
from markflow.logging_setup import configure_logging
from markflow.output import HtmlFileWriter, preview_document
from markflow.watch import watch_pipeline

app = typer.Typer(
    name="markflow",
    help="Convert Markdown into HTML ready for WeChat and Zhihu.",
)

config_app = typer.Typer(help="Manage MarkFlow configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: MarkflowConfig | None = None
_config_error: str | None = None


def _get_config() -> MarkflowConfig:
    if _config_error is not None:
        rprint(f"[red]Config error:[/red] {escape(_config_error)}")
        raise typer.Exit(1)
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to markflow.yaml")
    ] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Global options."""
    global _config, _config_error
    _config, _config_error = None, None
    try:
        _config = load_config(config)
    except ValueError as e:
        _config_error = str(e)
        configure_logging("debug" if verbose else "info")
        return
    configure_logging("debug" if verbose else _config.log_level, _config.log_format)


def _with_output_dir(cfg: MarkflowConfig, output_dir: str | None) -> MarkflowConfig:
    if not output_dir:
        return cfg
    return cfg.model_copy(update={"output": cfg.output.model_copy(update={"output_dir": output_dir})})


def _display_result(result: ProcessResult) -> None:
    """Per-target status table followed by diagnostics."""
    table = Table(title=escape(result.source_path))
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Output", style="green")
    for name, adapted in result.results.items():
        status = "[green]ok[/green]" if adapted.ok else "[red]failed[/red]"
        table.add_row(name, status, escape(result.outputs.get(name, "-")))
    rprint(table)
    content = result.content
    if content is not None:
        rprint(f"[dim]{content.word_count} chars, about {content.reading_time} min read[/dim]")
        if content.metadata.tags:
            rprint(f"[dim]tags: {escape(', '.join(content.metadata.tags))}[/dim]")
    for diag in result.diagnostics:
        colour = "red" if diag.severity == "error" else "yellow"
        rprint(f"[{colour}]{diag.severity}[/{colour}] {escape(str(diag))}")


def _write_previews(pipeline: Pipeline, result: ProcessResult) -> list[Path]:
    written = []
    content = result.content
    for name, path in result.outputs.items():
        adapted = result.results[name]
        adapter = pipeline.registry.get(Target(name))
        preview = Path(path).with_suffix(".preview.html")
        preview.write_text(
            preview_document(adapted.html or "", adapter.stylesheet, content.title),
            encoding="utf-8",
        )
        written.append(preview)
    return written


@app.command()
def process(
    file: str = typer.Argument(..., help="Markdown file to convert"),
    target: list[str] | None = typer.Option(
        None, "--target", "-t", help="wechat, zhihu or all (repeatable)"
    ),
    output_dir: str | None = typer.Option(None, "--output", "-o", help="Output directory"),
    preview: bool = typer.Option(False, "--preview", help="Also write a standalone preview page"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Convert without writing files"),
) -> None:
    """Convert one Markdown file for the requested platforms."""
    cfg = _with_output_dir(_get_config(), output_dir)
    pipeline = Pipeline(cfg)
    sink = HtmlFileWriter(cfg.output, dry_run=dry_run)

    try:
        result = pipeline.process(file, target or cfg.general.default_targets, sink)
    except ConfigError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_result(result)
    if not result.ok:
        rprint(f"[red]Failed[/red] at stage '{result.failed_stage}'")
        raise typer.Exit(1)

    if preview and not dry_run:
        for path in _write_previews(pipeline, result):
            rprint(f"[green]Preview:[/green] {path}")


@app.command()
def watch(
    directory: str = typer.Argument(..., help="Directory to watch"),
    target: list[str] | None = typer.Option(
        None, "--target", "-t", help="wechat, zhihu or all (repeatable)"
    ),
    output_dir: str | None = typer.Option(None, "--output", "-o", help="Output directory"),
) -> None:
    """Re-convert Markdown files in DIRECTORY whenever they change."""
    cfg = _with_output_dir(_get_config(), output_dir)
    pipeline = Pipeline(cfg)
    sink = HtmlFileWriter(cfg.output)
    ignored = {Path(cfg.output.output_dir).name}
    if cfg.output.backup_dir:
        ignored.add(Path(cfg.output.backup_dir).name)

    try:
        watcher = watch_pipeline(
            pipeline,
            directory,
            target or cfg.general.default_targets,
            sink,
            on_result=_display_result,
            ignore_dirs=ignored,
        )
        watcher.start()
    except (ConfigError, WatchError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    rprint(f"[bold]Watching[/bold] {watcher.root} (Ctrl+C to stop)")
    try:
        watcher.wait()
    except KeyboardInterrupt:
        rprint("\n[dim]Stopping...[/dim]")
    except WatchError as e:
        rprint(f"[red]Watch error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    finally:
        watcher.stop()


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(
        Syntax(
            yaml.dump(cfg.model_dump(), default_flow_style=False, allow_unicode=True),
            "yaml",
        )
    )


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default markflow.yaml in current directory."""
    target = Path("markflow.yaml")
    if target.exists() and not force:
        rprint("[yellow]markflow.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
