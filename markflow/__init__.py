"""MarkFlow: render Markdown once, adapt it for every publishing platform."""

__version__ = "0.1.0"
