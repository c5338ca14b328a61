"""Utility functions for Stitch.

This module contains path helpers and file primitives shared by the build
modules.

Key functions:
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    is_component_file: Check if a filename uses the component suffix.
    is_within: Check whether a path lies inside a directory.
    output_path_for: Map a source path onto the output tree.
    read_source: Read a source file without newline translation.
    atomic_write_text: Replace a file's contents atomically.
    atomic_copy: Copy a file byte-for-byte with atomic replacement.
    remove_output: Delete an output file or directory and prune empty parents.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

COMPONENT_SUFFIX = ".component.html"


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() == ".md"


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .html extension (case-insensitive).
    """
    return path.suffix.lower() == ".html"


def is_component_file(path: Path) -> bool:
    """Check if a filename ends with ``.component.html``."""
    return path.name.lower().endswith(COMPONENT_SUFFIX)


def is_within(path: Path, directory: Path) -> bool:
    """Return True if ``path`` is ``directory`` or lies below it."""
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    return True


def output_path_for(source_root: Path, output_dir: Path, path: Path) -> Path:
    """Map a source path onto the output tree.

    The relative structure is preserved and Markdown sources get an
    ``.html`` extension.

    Args:
        source_root: Root of the source tree.
        output_dir: Root of the output tree.
        path: Source path under ``source_root``.

    Returns:
        The output path for the source.

    Examples:
        >>> output_path_for(Path("/src"), Path("/out"), Path("/src/docs/a.md"))
        PosixPath('/out/docs/a.html')
    """
    rel = path.relative_to(source_root)
    target = output_dir / rel
    if is_markdown(path):
        target = target.with_suffix(".html")
    return target


def read_source(path: Path) -> str:
    """Read a UTF-8 source file, keeping its line endings untouched."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to ``path`` so readers see either the old or the new file.

    The content goes to a temporary file in the target directory first and is
    then moved into place with ``os.replace``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_copy(source: Path, dest: Path) -> None:
    """Copy ``source`` to ``dest`` byte-for-byte with atomic replacement."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    os.close(fd)
    try:
        shutil.copyfile(source, tmp_name)
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def remove_output(path: Path, stop_at: Path) -> bool:
    """Remove an output file or directory tree.

    Empty parent directories are pruned up to (but not including) ``stop_at``.

    Args:
        path: Output file or directory to delete.
        stop_at: Output root; never removed.

    Returns:
        True if something was deleted.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
    else:
        return False
    parent = path.parent
    while parent != stop_at and is_within(parent, stop_at):
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    return True
