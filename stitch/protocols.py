"""Protocol definitions for Stitch.

These protocols are the seams between the orchestrator and its
collaborators, so renderers and build listeners can be swapped in tests or
extended without touching the builder.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .build import BuildReport
    from .discovery import SourceKind


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for rendering page source to HTML.

    Implementations handle one source kind each (Markdown or HTML).
    """

    @abstractmethod
    def can_render(self, kind: SourceKind) -> bool:
        """Check if this renderer handles the given source kind.

        Args:
            kind: Classification of the source file.

        Returns:
            True if this renderer can process the source.
        """
        ...

    @abstractmethod
    def render(self, content: str) -> str:
        """Render source text to HTML.

        Args:
            content: Source text of the page.

        Returns:
            Rendered HTML, before component injection.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class BuildListener(Protocol):
    """Callable notified after every completed build."""

    def __call__(self, report: BuildReport) -> None: ...
