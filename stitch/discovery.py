"""Source discovery for Stitch.

This module walks the source tree, consults the ignore matcher and
classifies every file it finds.

Key classes:
- SourceKind: Role of a source file in the build.
- SourceFile: A classified source file with its output path.
- SourceTree: Facade that scans a root into SourceFile instances.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import DiscoveryError
from .ignore import IgnoreMatcher
from .logging import get_logger
from .utils import is_component_file, is_html, is_markdown, output_path_for

logger = get_logger("discovery")

DEFAULT_COMPONENTS_DIR = "components"


class SourceKind(Enum):
    """Role of a source file.

    HTML_PAGE and MARKDOWN_PAGE are render-eligible, STATIC_ASSET is copied
    verbatim and COMPONENT only feeds the component registry.
    """

    HTML_PAGE = "html"
    MARKDOWN_PAGE = "markdown"
    STATIC_ASSET = "asset"
    COMPONENT = "component"

    @property
    def is_page(self) -> bool:
        return self in (SourceKind.HTML_PAGE, SourceKind.MARKDOWN_PAGE)


@dataclass(frozen=True)
class SourceFile:
    """A discovered source file.

    Attributes:
        path: Absolute path of the source.
        kind: Classification of the source.
        rel_path: POSIX path relative to the source root.
        output_path: Output file the source produces (None for components).
    """

    path: Path
    kind: SourceKind
    rel_path: str
    output_path: Path | None


def classify(path: Path, root: Path, components_dir: str = DEFAULT_COMPONENTS_DIR) -> SourceKind:
    """Classify a source path by its location and extension.

    Args:
        path: Source path (absolute or relative to ``root``).
        root: Source root.
        components_dir: Root-relative directory holding components.

    Returns:
        COMPONENT for ``.html`` files inside the components directory or
        named ``*.component.html``, HTML_PAGE for other ``.html`` files,
        MARKDOWN_PAGE for ``.md`` files and STATIC_ASSET otherwise.
    """
    path = Path(path)
    rel = path.relative_to(root) if path.is_absolute() else path
    if is_html(path):
        prefix = Path(components_dir).parts if components_dir else ()
        in_components = bool(prefix) and rel.parts[: len(prefix)] == prefix and len(rel.parts) > len(prefix)
        if in_components or is_component_file(path):
            return SourceKind.COMPONENT
        return SourceKind.HTML_PAGE
    if is_markdown(path):
        return SourceKind.MARKDOWN_PAGE
    return SourceKind.STATIC_ASSET


def discover(root: Path, matcher: IgnoreMatcher | None = None) -> Iterator[Path]:
    """Enumerate the files under ``root`` that are not ignored.

    Ignored directories are pruned without being descended. Paths are
    yielded lazily in sorted order.

    Args:
        root: Source root.
        matcher: Ignore matcher; nothing is ignored when None.

    Returns:
        Iterator of absolute file paths.

    Raises:
        DiscoveryError: If ``root`` does not exist or is not a directory.
    """
    root = Path(root)
    if not root.exists():
        raise DiscoveryError(root, "source root does not exist")
    if not root.is_dir():
        raise DiscoveryError(root, "source root is not a directory")
    return _walk(root, matcher)


def _walk(root: Path, matcher: IgnoreMatcher | None) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept = []
        for name in sorted(dirnames):
            if matcher is not None and matcher.is_ignored(current / name, is_dir=True):
                logger.debug("Skipping ignored directory %s", current / name)
                continue
            kept.append(name)
        dirnames[:] = kept
        for name in sorted(filenames):
            path = current / name
            if matcher is not None and matcher.is_ignored(path, is_dir=False):
                continue
            yield path


class SourceTree:
    """Scans a source root into classified SourceFile objects.

    Attributes:
        root: Source root.
        output_dir: Output root used to compute output paths.
        components_dir: Root-relative components directory.
    """

    def __init__(
        self,
        root: Path,
        output_dir: Path,
        components_dir: str = DEFAULT_COMPONENTS_DIR,
    ):
        self.root = root
        self.output_dir = output_dir
        self.components_dir = components_dir

    def source_file(self, path: Path) -> SourceFile:
        """Classify one path and compute its output path."""
        kind = classify(path, self.root, self.components_dir)
        output = None
        if kind is not SourceKind.COMPONENT:
            output = output_path_for(self.root, self.output_dir, path)
        return SourceFile(
            path=path,
            kind=kind,
            rel_path=path.relative_to(self.root).as_posix(),
            output_path=output,
        )

    def scan(self, matcher: IgnoreMatcher | None = None, start: Path | None = None) -> list[SourceFile]:
        """Discover and classify every file under the root.

        Args:
            matcher: Ignore matcher applied while walking.
            start: Optional subdirectory of the root to limit the scan to.

        Returns:
            List of SourceFile objects in walk order.
        """
        return [self.source_file(path) for path in discover(start or self.root, matcher)]
