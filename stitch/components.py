"""Component registry for Stitch.

Components are reusable HTML fragments referenced by name from pages. The
registry is always loaded in full: any page may reference any component, so
a change to one component file cannot be resolved incrementally.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from .errors import BuildIOError, DuplicateComponentError
from .logging import get_logger
from .utils import COMPONENT_SUFFIX, read_source

logger = get_logger("components")


def component_name(path: Path) -> str:
    """Derive a component name from its filename.

    Examples:
        >>> component_name(Path("components/nav.html"))
        'nav'

        >>> component_name(Path("partials/footer.component.html"))
        'footer'
    """
    name = path.name
    if name.lower().endswith(COMPONENT_SUFFIX):
        return name[: -len(COMPONENT_SUFFIX)]
    return path.stem


@dataclass(frozen=True)
class Component:
    """A named reusable HTML fragment.

    Attributes:
        name: Unique identifier derived from the filename.
        path: Source file of the component.
        raw_markup: Unrendered HTML text.
    """

    name: str
    path: Path
    raw_markup: str


class ComponentRegistry:
    """Mapping from component name to Component."""

    def __init__(self, components: Iterable[Component] = ()):
        self._components: dict[str, Component] = {}
        for component in components:
            existing = self._components.get(component.name)
            if existing is not None:
                raise DuplicateComponentError(component.name, [existing.path, component.path])
            self._components[component.name] = component

    @classmethod
    def load(cls, paths: Iterable[Path]) -> ComponentRegistry:
        """Read every component file into a new registry.

        Args:
            paths: Component source files.

        Returns:
            Registry keyed by component name.

        Raises:
            DuplicateComponentError: If two files normalize to the same name.
            BuildIOError: If a component file cannot be read.
        """
        by_name: dict[str, list[Path]] = {}
        for path in paths:
            by_name.setdefault(component_name(path), []).append(path)
        for name, sources in by_name.items():
            if len(sources) > 1:
                raise DuplicateComponentError(name, sorted(sources))

        components = []
        for name, (path,) in sorted(by_name.items()):
            try:
                markup = read_source(path)
            except (OSError, UnicodeDecodeError) as exc:
                raise BuildIOError(path, f"Cannot read component: {exc}", exc) from exc
            components.append(Component(name=name, path=path, raw_markup=markup))
        logger.debug("Loaded %d components", len(components))
        return cls(components)

    def lookup(self, name: str) -> Component | None:
        """Return the component called ``name``, or None."""
        return self._components.get(name)

    def names(self) -> list[str]:
        return sorted(self._components)

    def __contains__(self, name: object) -> bool:
        return name in self._components

    def __iter__(self) -> Iterator[Component]:
        return iter(self._components.values())

    def __len__(self) -> int:
        return len(self._components)
