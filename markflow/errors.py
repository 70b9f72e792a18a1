"""Exception hierarchy for MarkFlow.

Recoverable problems (bad preamble, renderer warnings, a single adapter
failing) are reported as Diagnostic values on the result, not raised.
These exceptions cover configuration mistakes and boundary failures.
"""

from __future__ import annotations


class MarkflowError(Exception):
    """Base class for all MarkFlow errors."""


class ConfigError(MarkflowError):
    """Invalid configuration or invocation, raised before any work starts."""


class UnknownTargetError(ConfigError):
    """A requested target identifier is not registered."""

    def __init__(self, identifier: str, known: list[str]) -> None:
        self.identifier = identifier
        self.known = known
        problem = f"Unknown target {identifier!r}" if identifier else "No target requested"
        super().__init__(f"{problem}. Supported: {', '.join(known)}, all")


class OutputError(MarkflowError):
    """Writing adapted HTML to its destination failed."""

    def __init__(self, path: str, cause: Exception) -> None:
        self.path = path
        super().__init__(f"failed to write {path}: {cause}")
        self.__cause__ = cause


class WatchError(MarkflowError):
    """The watch session cannot continue (e.g. watched directory removed)."""
