"""Error types for Stitch.

Errors come in two scopes:

- Build-scoped errors abort the whole build or watch cycle and propagate to
  the caller: DiscoveryError, IgnoreFileError, ConfigError,
  DuplicateComponentError, WatchError and BuildStateError.
- Page-scoped errors are subclasses of BuildError. The orchestrator records
  them in the build report and carries on with the remaining pages:
  UnknownComponentError, MarkdownRenderError, BuildIOError and
  OutputCollisionError.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class StitchError(Exception):
    """Base class for every error raised by Stitch."""


class DiscoveryError(StitchError):
    """The source root is missing or is not a directory.

    Attributes:
        root: The source root that could not be walked.
        message: Human-readable error message.
    """

    def __init__(self, root: Path, message: str):
        self.root = root
        self.message = message
        super().__init__(f"{root}: {message}")


class IgnoreFileError(StitchError):
    """An ignore file could not be read or decoded.

    Attributes:
        path: The ignore file.
        message: Human-readable error message.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class ConfigError(StitchError):
    """The site configuration is unusable."""


class DuplicateComponentError(StitchError):
    """Two component files normalize to the same component name.

    Attributes:
        name: The colliding component name.
        paths: Every component file that produced the name.
    """

    def __init__(self, name: str, paths: Iterable[Path]):
        self.name = name
        self.paths = tuple(paths)
        listed = ", ".join(str(p) for p in self.paths)
        super().__init__(f"Duplicate component '{name}' defined by: {listed}")


class WatchError(StitchError):
    """The filesystem event subsystem failed."""


class BuildStateError(StitchError):
    """Raised when an invalid build state transition is attempted."""

    def __init__(self, from_state, to_state):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid build state transition: {from_state.name} -> {to_state.name}"
        )


class BuildError(StitchError):
    """Error while building a single page, with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}" if source_path else message)


class UnknownComponentError(BuildError):
    """A page references a component that is not in the registry."""

    def __init__(self, component_name: str, source_path: Path | None = None):
        self.component_name = component_name
        super().__init__(source_path, f"Unknown component: {component_name}")


class MarkdownRenderError(BuildError):
    """Markdown source could not be rendered."""


class BuildIOError(BuildError):
    """Reading a source or writing an output failed."""


class OutputCollisionError(BuildError):
    """Two live sources map onto the same output path."""

    def __init__(self, source_path: Path, output_path: Path, others: Iterable[Path]):
        self.output_path = output_path
        self.others = tuple(others)
        listed = ", ".join(str(p) for p in self.others)
        super().__init__(source_path, f"Output {output_path} is also produced by {listed}")


def format_error_message(exc: Exception) -> str:
    """Format an unexpected exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UnicodeDecodeError":
        return f"Source is not valid UTF-8: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
