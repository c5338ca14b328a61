"""Ignore rules for source discovery.

Rules are read from ignore files (``.gitignore`` and ``.ignore`` by default)
found anywhere under the source root. A rule only applies below the
directory holding its ignore file. For a given path the last matching rule
across all loaded files wins, ``!`` negates, and a path inside an ignored
directory is ignored whatever its own rules say.

Key classes:
- IgnoreRule: One parsed pattern.
- IgnoreMatcher: Ordered rule list with the ``is_ignored`` predicate.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .errors import IgnoreFileError
from .logging import get_logger
from .utils import is_within, read_source

logger = get_logger("ignore")

DEFAULT_IGNORE_FILES = (".gitignore", ".ignore")
BUILTIN_PATTERNS = (".git/", ".github/")


def _translate_glob(pattern: str) -> str:
    """Translate an ignore glob into a regular expression body.

    ``*`` and ``?`` never match ``/``; ``**`` spans directories.
    """
    i, n = 0, len(pattern)
    out: list[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                i += 2
                if at_start and i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j].replace("\\", "\\\\")
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from an ignore file.

    Attributes:
        pattern: Glob with the negation and slashes stripped.
        base: Root-relative POSIX directory of the ignore file ("" for the root).
        negate: Whether the rule re-includes matches.
        directory_only: Whether the rule only matches directories.
        anchored: Whether the rule matches paths relative to ``base`` rather
            than basenames at any depth.
    """

    pattern: str
    base: str = ""
    negate: bool = False
    directory_only: bool = False
    anchored: bool = False
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._regex = re.compile(f"(?s:{_translate_glob(self.pattern)})\\Z")

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        """Check the rule against one root-relative POSIX path."""
        if self.directory_only and not is_dir:
            return False
        if self.base:
            if not rel_path.startswith(f"{self.base}/"):
                return False
            rel_path = rel_path[len(self.base) + 1 :]
        if self.anchored:
            return self._regex.match(rel_path) is not None
        return self._regex.match(rel_path.rsplit("/", 1)[-1]) is not None


def parse_rule(line: str, base: str = "") -> IgnoreRule | None:
    """Parse one ignore-file line.

    Args:
        line: Raw line from an ignore file.
        base: Root-relative directory holding the ignore file.

    Returns:
        The parsed rule, or None for blank lines and comments.
    """
    line = line.rstrip("\r\n")
    stripped = line.rstrip()
    if stripped.endswith("\\") and len(line) > len(stripped):
        stripped += " "
    line = stripped
    if not line or line.startswith("#"):
        return None

    negate = False
    if line.startswith("!"):
        negate = True
        line = line[1:]
    elif line.startswith(("\\!", "\\#")):
        line = line[1:]

    directory_only = line.endswith("/")
    line = line.rstrip("/")
    if not line:
        return None

    anchored = "/" in line
    line = line.lstrip("/")
    if not line:
        return None
    return IgnoreRule(
        pattern=line,
        base=base,
        negate=negate,
        directory_only=directory_only,
        anchored=anchored,
    )


def parse_ignore_file(path: Path, base: str = "") -> list[IgnoreRule]:
    """Parse every rule of one ignore file.

    Raises:
        IgnoreFileError: If the file cannot be read or is not UTF-8.
    """
    try:
        text = read_source(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise IgnoreFileError(path, f"Cannot read ignore file: {exc}") from exc
    rules: list[IgnoreRule] = []
    for raw_line in text.splitlines():
        rule = parse_rule(raw_line, base)
        if rule is not None:
            rules.append(rule)
    return rules


class IgnoreMatcher:
    """Decides whether a path under the source root is excluded.

    Attributes:
        root: Resolved source root.
        rules: Ordered rule list; later rules take precedence.
    """

    def __init__(self, root: Path, rules: Sequence[IgnoreRule] = ()):
        self.root = root
        self.rules = list(rules)

    @classmethod
    def load(
        cls,
        root: Path,
        ignore_files: Iterable[str] = DEFAULT_IGNORE_FILES,
        extra_patterns: Iterable[str] = (),
    ) -> IgnoreMatcher:
        """Build a matcher from every ignore file under ``root``.

        Ignore files are read top-down in sorted order, so a parent's rules
        come before its children's. Directories ignored by the rules read so
        far are not searched for further ignore files. The built-in patterns
        and ``extra_patterns`` are appended last and therefore always win.

        Args:
            root: Source root.
            ignore_files: Ignore file names to look for in every directory.
            extra_patterns: Additional root-level patterns.

        Returns:
            IgnoreMatcher for the tree.
        """
        root = Path(root)
        names = tuple(ignore_files)
        overrides = [
            rule
            for rule in (parse_rule(p) for p in (*BUILTIN_PATTERNS, *names, *extra_patterns))
            if rule is not None
        ]
        matcher = cls(root)
        for dirpath, dirnames, _ in os.walk(root):
            current = Path(dirpath)
            base = "" if current == root else current.relative_to(root).as_posix()
            for name in names:
                candidate = current / name
                if candidate.is_file():
                    logger.debug("Loading ignore rules from %s", candidate)
                    matcher.rules.extend(parse_ignore_file(candidate, base))
            # Overrides are evaluated here too so .git is never searched.
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not matcher._decide(f"{base}/{d}" if base else d, True, extra=overrides)
            )
        matcher.rules.extend(overrides)
        return matcher

    def is_ignored(self, path: Path, is_dir: bool | None = None) -> bool:
        """Return True if ``path`` is excluded from discovery.

        Args:
            path: Absolute path, or a path relative to the root.
            is_dir: Whether the path is a directory; looked up on disk when None.

        Returns:
            True if an ancestor directory is ignored or the last matching rule
            for the path itself is not negated.
        """
        path = Path(path)
        absolute = path if path.is_absolute() else self.root / path
        if not is_within(absolute, self.root) or absolute == self.root:
            return False
        if is_dir is None:
            is_dir = absolute.is_dir()
        parts = absolute.relative_to(self.root).parts
        for depth in range(1, len(parts)):
            if self._decide("/".join(parts[:depth]), True):
                return True
        return self._decide("/".join(parts), is_dir)

    def _decide(self, rel_path: str, is_dir: bool, extra: Sequence[IgnoreRule] = ()) -> bool:
        ignored = False
        for rule in (*self.rules, *extra):
            if rule.matches(rel_path, is_dir):
                ignored = not rule.negate
        return ignored
