"""Tests for the component registry and the injection engine."""

from pathlib import Path

import pytest

from stitch.components import Component, ComponentRegistry, component_name
from stitch.errors import DuplicateComponentError, UnknownComponentError
from stitch.injection import find_references, inject


def registry_of(**components: str) -> ComponentRegistry:
    return ComponentRegistry(
        Component(name=name, path=Path(f"components/{name}.html"), raw_markup=markup)
        for name, markup in components.items()
    )


# --- Registry ---


def test_component_name_strips_extensions():
    assert component_name(Path("components/nav.html")) == "nav"
    assert component_name(Path("x/footer.component.html")) == "footer"
    assert component_name(Path("components/site.header.html")) == "site.header"


def test_registry_load_reads_raw_markup(tmp_path):
    comps = tmp_path / "components"
    comps.mkdir()
    (comps / "nav.html").write_bytes(b"<nav>Home</nav>\r\n")
    (tmp_path / "card.component.html").write_text("<div class='card'></div>", encoding="utf-8")

    registry = ComponentRegistry.load([comps / "nav.html", tmp_path / "card.component.html"])
    assert len(registry) == 2
    assert registry.names() == ["card", "nav"]
    assert registry.lookup("nav").raw_markup == "<nav>Home</nav>\r\n"
    assert registry.lookup("card").path == tmp_path / "card.component.html"
    assert registry.lookup("missing") is None
    assert "nav" in registry
    assert {c.name for c in registry} == {"card", "nav"}


def test_registry_rejects_duplicate_names(tmp_path):
    first = tmp_path / "components" / "nav.html"
    second = tmp_path / "components" / "old" / "nav.html"
    second.parent.mkdir(parents=True)
    first.write_text("a", encoding="utf-8")
    second.write_text("b", encoding="utf-8")

    with pytest.raises(DuplicateComponentError) as excinfo:
        ComponentRegistry.load([first, second])
    assert excinfo.value.name == "nav"
    assert set(excinfo.value.paths) == {first, second}


def test_registry_rejects_suffix_and_directory_collision(tmp_path):
    a = tmp_path / "components" / "nav.html"
    b = tmp_path / "nav.component.html"
    a.parent.mkdir()
    a.write_text("a", encoding="utf-8")
    b.write_text("b", encoding="utf-8")
    with pytest.raises(DuplicateComponentError):
        ComponentRegistry.load([a, b])


def test_registry_constructor_rejects_duplicates():
    with pytest.raises(DuplicateComponentError):
        ComponentRegistry(
            [
                Component("nav", Path("a/nav.html"), "a"),
                Component("nav", Path("b/nav.html"), "b"),
            ]
        )


# --- Injection ---


def test_inject_without_references_is_identity():
    html = "<html><body><p>{ not a ref }</p></body></html>"
    assert inject(html, registry_of(nav="<nav></nav>")) == html


def test_inject_splices_at_reference_position():
    registry = registry_of(nav="<nav>Home</nav>")
    assert inject("<body>{{nav}}</body>", registry) == "<body><nav>Home</nav></body>"
    assert inject("<body>{{ nav }}</body>", registry) == "<body><nav>Home</nav></body>"


def test_inject_supports_tag_form():
    registry = registry_of(footer="<footer>bye</footer>")
    assert inject("<main></main><#footer />", registry) == "<main></main><footer>bye</footer>"
    assert inject("<main></main>< #footer/>", registry) == "<main></main><footer>bye</footer>"


def test_inject_resolves_repeated_references_independently():
    registry = registry_of(hr="<hr>", nav="<nav></nav>")
    assert inject("{{hr}}a{{nav}}b{{hr}}", registry) == "<hr>a<nav></nav>b<hr>"


def test_injected_markup_is_not_rescanned():
    registry = registry_of(loop="<b>{{loop}}</b>", other="<i>{{nav}}</i>")
    assert inject("x{{loop}}y", registry) == "x<b>{{loop}}</b>y"
    # a marker inside a component is emitted as-is, even for unknown names
    assert inject("{{other}}", registry) == "<i>{{nav}}</i>"


def test_unknown_component_raises_with_context():
    with pytest.raises(UnknownComponentError) as excinfo:
        inject("<p>{{ nav }}{{ ghost }}</p>", registry_of(nav=""), Path("index.html"))
    err = excinfo.value
    assert err.component_name == "ghost"
    assert err.source_path == Path("index.html")
    assert "ghost" in err.message


def test_find_references_in_document_order():
    assert find_references("<body>{{ nav }}<#footer /></body>{{nav}}") == ["nav", "footer", "nav"]
    assert find_references("<p>plain</p>") == []
