"""Output subsystem: writes adapted HTML files."""

from markflow.output.writer import HtmlFileWriter, OutputSink, preview_document

__all__ = [
    "HtmlFileWriter",
    "OutputSink",
    "preview_document",
]
