"""Site building functionality for Stitch.

This module contains the build orchestrator. It owns every write to the
output tree: full builds, incremental rebuilds for a set of changed paths,
and removal of stale outputs.

Key classes:
- BuildState: Build lifecycle states.
- BuildReport: Outputs written and removed, plus per-page failures.
- SiteBuilder: The orchestrator.

Builds are serialized by a lock, so a rebuild requested while another build
runs waits for it instead of overlapping.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, ClassVar

from .components import ComponentRegistry
from .config import CONFIG_FILENAME, load_config, resolve_output_dir
from .discovery import DEFAULT_COMPONENTS_DIR, SourceFile, SourceKind, SourceTree
from .errors import (
    BuildError,
    BuildIOError,
    BuildStateError,
    ConfigError,
    MarkdownRenderError,
    OutputCollisionError,
    format_error_message,
)
from .ignore import DEFAULT_IGNORE_FILES, IgnoreMatcher
from .injection import find_references, inject
from .logging import get_logger
from .protocols import BuildListener
from .renderers import RendererRegistry
from .utils import atomic_copy, atomic_write_text, is_within, read_source, remove_output

logger = get_logger("build")


class BuildState(Enum):
    """Build lifecycle states.

    State transitions:
        IDLE -> BUILDING: First build starts
        BUILDING -> SUCCEEDED: Every page built
        BUILDING -> PARTIALLY_FAILED: At least one page failed
        BUILDING -> IDLE: Build aborted by a build-scoped error
        SUCCEEDED/PARTIALLY_FAILED -> BUILDING: Next build starts
    """

    IDLE = auto()
    BUILDING = auto()
    SUCCEEDED = auto()
    PARTIALLY_FAILED = auto()


@dataclass
class PageFailure:
    """A page that could not be built.

    Attributes:
        source_path: Source file of the page.
        error: The page-scoped error.
    """

    source_path: Path
    error: BuildError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class BuildReport:
    """Result of a build or rebuild.

    Attributes:
        full: Whether the whole tree was rebuilt.
        written: Output files written or copied.
        removed: Stale output paths deleted.
        failures: Pages that failed; their previous outputs were kept.
    """

    full: bool = False
    written: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    failures: list[PageFailure] = field(default_factory=list)

    @property
    def state(self) -> BuildState:
        return BuildState.PARTIALLY_FAILED if self.failures else BuildState.SUCCEEDED

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def has_changes(self) -> bool:
        """True if the output tree was modified."""
        return bool(self.written or self.removed)

    def record_failure(self, source_path: Path, error: BuildError) -> None:
        logger.warning("Failed to build %s: %s", source_path, error.message)
        self.failures.append(PageFailure(source_path=source_path, error=error))

    def summary(self) -> str:
        kind = "Full build" if self.full else "Rebuild"
        text = f"{kind}: {len(self.written)} written, {len(self.removed)} removed"
        if self.failures:
            text += f", {len(self.failures)} failed"
        return text


class SiteBuilder:
    """Builds a source tree into an output tree.

    Attributes:
        source_root: Resolved source root.
        config: Site configuration.
        output_dir: Resolved output root.
        components_dir: Root-relative components directory.
        ignore_files: Ignore file names read during discovery.
        renderers: Registry of page renderers.
        matcher: Ignore matcher of the last full build.
        registry: Component registry of the last full build.
    """

    VALID_TRANSITIONS: ClassVar[dict[BuildState, set[BuildState]]] = {
        BuildState.IDLE: {BuildState.BUILDING},
        BuildState.BUILDING: {
            BuildState.SUCCEEDED,
            BuildState.PARTIALLY_FAILED,
            BuildState.IDLE,
        },
        BuildState.SUCCEEDED: {BuildState.BUILDING},
        BuildState.PARTIALLY_FAILED: {BuildState.BUILDING},
    }

    def __init__(
        self,
        source_root: Path,
        output_dir: Path | None = None,
        config: dict[str, Any] | None = None,
        renderers: RendererRegistry | None = None,
    ):
        """Initialize the builder.

        Args:
            source_root: Root of the source tree.
            output_dir: Optional override for the configured output directory.
            config: Optional configuration; loaded from stitch.yaml when None.
            renderers: Optional custom renderer registry.

        Raises:
            ConfigError: If stitch.yaml is unreadable, or the output directory
                is the source root or one of its ancestors.
        """
        self.source_root = Path(source_root).resolve()
        self.config = config if config is not None else load_config(self.source_root)
        if output_dir is not None:
            self.output_dir = Path(output_dir).resolve()
        else:
            self.output_dir = resolve_output_dir(self.source_root, self.config)
        # Pruning deletes everything under the output directory that no
        # source produces, so it must never hold the sources themselves.
        if is_within(self.source_root, self.output_dir):
            raise ConfigError(
                f"Output directory {self.output_dir} must not contain the source root {self.source_root}"
            )
        self.components_dir = self.config.get("components_dir", DEFAULT_COMPONENTS_DIR)
        self.ignore_files = tuple(self.config.get("ignore_files") or DEFAULT_IGNORE_FILES)
        self.renderers = renderers or RendererRegistry()
        self.tree = SourceTree(self.source_root, self.output_dir, self.components_dir)
        self.matcher: IgnoreMatcher | None = None
        self.registry: ComponentRegistry | None = None
        self.last_report: BuildReport | None = None
        self._state = BuildState.IDLE
        self._lock = threading.Lock()
        self._listeners: list[BuildListener] = []

    @property
    def state(self) -> BuildState:
        """Get the current state."""
        return self._state

    def add_listener(self, listener: BuildListener) -> None:
        """Register a callback invoked with every completed BuildReport."""
        self._listeners.append(listener)

    def full_build(self) -> BuildReport:
        """Build every source file and prune stale outputs.

        Returns:
            BuildReport for the build.

        Raises:
            DiscoveryError: If the source root cannot be walked.
            IgnoreFileError: If an ignore file cannot be read.
            DuplicateComponentError: If two components share a name.
        """
        return self._run(self._full_build)

    def rebuild(self, changed_paths: Iterable[Path]) -> BuildReport:
        """Rebuild the outputs affected by a set of changed source paths.

        A change to a component or to an ignore file rebuilds the whole
        tree. Other paths are rebuilt one by one, and deleted or ignored
        paths have their outputs removed.

        Args:
            changed_paths: Absolute or root-relative paths.

        Returns:
            BuildReport for the rebuild.
        """
        changed = list(changed_paths)
        return self._run(lambda: self._rebuild(changed))

    def render_page(self, source: SourceFile) -> str:
        """Render one page and inject its components.

        Args:
            source: A HTML_PAGE or MARKDOWN_PAGE source.

        Returns:
            Final page HTML.

        Raises:
            BuildIOError: If the source cannot be read.
            MarkdownRenderError: If Markdown rendering fails.
            UnknownComponentError: If the page references an unknown component.
        """
        try:
            text = read_source(source.path)
        except OSError as exc:
            raise BuildIOError(source.path, f"Cannot read source: {exc}", exc) from exc
        renderer = self.renderers.get_renderer(source.kind)
        if renderer is None:
            raise BuildError(source.path, f"No renderer for {source.kind.value} sources")
        try:
            html = renderer.render(text)
        except MarkdownRenderError as exc:
            raise MarkdownRenderError(source.path, exc.message, exc.original_error) from exc
        references = find_references(html)
        if references:
            logger.debug("Injecting %s into %s", ", ".join(references), source.rel_path)
        return inject(html, self.registry or ComponentRegistry(), source.path)

    def _run(self, build: Callable[[], BuildReport]) -> BuildReport:
        with self._lock:
            self._transition(BuildState.BUILDING)
            try:
                report = build()
            except BaseException:
                self._transition(BuildState.IDLE)
                raise
            self._transition(report.state)
            self.last_report = report
        logger.debug(report.summary())
        for listener in self._listeners:
            listener(report)
        return report

    def _transition(self, to_state: BuildState) -> None:
        if to_state not in self.VALID_TRANSITIONS[self._state]:
            raise BuildStateError(self._state, to_state)
        self._state = to_state

    def _load_matcher(self) -> IgnoreMatcher:
        extra = [f"/{CONFIG_FILENAME}"]
        if self.output_dir != self.source_root and is_within(self.output_dir, self.source_root):
            extra.append(f"/{self.output_dir.relative_to(self.source_root).as_posix()}/")
        return IgnoreMatcher.load(self.source_root, self.ignore_files, extra)

    def _full_build(self) -> BuildReport:
        logger.debug("Full build of %s into %s", self.source_root, self.output_dir)
        matcher = self._load_matcher()
        sources = self.tree.scan(matcher)
        registry = ComponentRegistry.load(s.path for s in sources if s.kind is SourceKind.COMPONENT)
        self.matcher = matcher
        self.registry = registry

        owners: dict[Path, list[Path]] = {}
        for source in sources:
            if source.output_path is not None:
                owners.setdefault(source.output_path, []).append(source.path)

        report = BuildReport(full=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for source in sources:
            if source.output_path is None:
                continue
            others = [p for p in owners[source.output_path] if p != source.path]
            if others:
                report.record_failure(
                    source.path, OutputCollisionError(source.path, source.output_path, others)
                )
                continue
            self._build_source(source, report)
        self._prune(set(owners), report)
        return report

    def _rebuild(self, changed: list[Path]) -> BuildReport:
        if self.matcher is None or self.registry is None:
            return self._full_build()

        paths: set[Path] = set()
        for raw in changed:
            path = Path(raw)
            path = path if path.is_absolute() else self.source_root / path
            if path == self.source_root or not is_within(path, self.source_root):
                continue
            if is_within(path, self.output_dir):
                continue
            paths.add(path)

        expanded: set[Path] = set()
        for path in paths:
            if path.is_dir() and not self.matcher.is_ignored(path, is_dir=True):
                expanded.update(s.path for s in self.tree.scan(self.matcher, start=path))
            else:
                expanded.add(path)

        if any(self._requires_full_build(path) for path in expanded):
            logger.info("Components or ignore rules changed; rebuilding everything")
            return self._full_build()

        report = BuildReport()
        for path in sorted(expanded):
            self._rebuild_path(path, report)
        return report

    def _requires_full_build(self, path: Path) -> bool:
        if path.name in self.ignore_files:
            return True
        if self.tree.source_file(path).kind is SourceKind.COMPONENT:
            return True
        # A deleted directory may have held components.
        return any(is_within(c.path, path) for c in self.registry or ())

    def _rebuild_path(self, path: Path, report: BuildReport) -> None:
        source = self.tree.source_file(path)
        if not path.is_file() or self.matcher.is_ignored(path, is_dir=False):
            self._remove_stale(source, report)
            return
        others = self._live_owners(source.output_path, exclude=path)
        if others:
            report.record_failure(path, OutputCollisionError(path, source.output_path, others))
            return
        self._build_source(source, report)

    def _remove_stale(self, source: SourceFile, report: BuildReport) -> None:
        target = source.output_path
        if target is None:
            return
        owners = self._live_owners(target, exclude=source.path)
        if len(owners) == 1:
            # The output now belongs to the remaining source alone.
            if target not in report.written:
                self._build_source(self.tree.source_file(owners[0]), report)
            return
        if owners or not (target.exists() or target.is_symlink()):
            return
        try:
            remove_output(target, self.output_dir)
        except OSError as exc:
            report.record_failure(
                source.path, BuildIOError(source.path, f"Cannot remove {target}: {exc}", exc)
            )
            return
        logger.debug("Removed stale output %s", target)
        report.removed.append(target)

    def _live_owners(self, output_path: Path | None, exclude: Path) -> list[Path]:
        """Return the live sources, other than ``exclude``, producing ``output_path``."""
        if output_path is None:
            return []
        rel = output_path.relative_to(self.output_dir)
        candidates = [self.source_root / rel]
        if rel.suffix.lower() == ".html":
            candidates.append(self.source_root / rel.with_suffix(".md"))
        owners = []
        for candidate in candidates:
            if candidate == exclude or not candidate.is_file():
                continue
            if self.matcher.is_ignored(candidate, is_dir=False):
                continue
            if self.tree.source_file(candidate).kind is SourceKind.COMPONENT:
                continue
            owners.append(candidate)
        return owners

    def _build_source(self, source: SourceFile, report: BuildReport) -> None:
        try:
            if source.kind.is_page:
                atomic_write_text(source.output_path, self.render_page(source))
            else:
                atomic_copy(source.path, source.output_path)
        except BuildError as exc:
            report.record_failure(source.path, exc)
        except OSError as exc:
            report.record_failure(
                source.path,
                BuildIOError(source.path, f"Cannot write {source.output_path}: {exc}", exc),
            )
        except Exception as exc:
            report.record_failure(source.path, BuildError(source.path, format_error_message(exc), exc))
        else:
            logger.debug("Wrote %s", source.output_path)
            report.written.append(source.output_path)

    def _prune(self, expected: set[Path], report: BuildReport) -> None:
        """Delete output files that no live source produces."""
        for dirpath, dirnames, filenames in os.walk(self.output_dir, topdown=False):
            current = Path(dirpath)
            for name in filenames:
                path = current / name
                if path in expected:
                    continue
                try:
                    path.unlink()
                except OSError as exc:
                    logger.warning("Cannot remove stale output %s: %s", path, exc)
                    continue
                report.removed.append(path)
            if current != self.output_dir and not any(current.iterdir()):
                current.rmdir()


def build_site(source_root: Path, output_dir: Path | None = None) -> BuildReport:
    """Run a single full build.

    Args:
        source_root: Root of the source tree.
        output_dir: Optional override for the configured output directory.

    Returns:
        BuildReport of the build.
    """
    return SiteBuilder(source_root, output_dir=output_dir).full_build()
