from pathlib import Path

import pytest

from stitch import utils
from stitch.config import DEFAULT_CONFIG, load_config, resolve_output_dir
from stitch.errors import ConfigError
from stitch.html_utils import escape_html, insert_before_body_end


def test_path_predicates():
    assert utils.is_markdown(Path("page.md"))
    assert utils.is_markdown(Path("PAGE.MD"))
    assert not utils.is_markdown(Path("page.markdown.html"))

    assert utils.is_html(Path("page.html"))
    assert utils.is_html(Path("404.HTML"))
    assert not utils.is_html(Path("page.htm"))
    assert not utils.is_html(Path("page.md"))

    assert utils.is_component_file(Path("nav.component.html"))
    assert not utils.is_component_file(Path("component.html"))
    assert not utils.is_component_file(Path("nav.component.md"))


def test_is_within(tmp_path):
    assert utils.is_within(tmp_path / "a" / "b", tmp_path)
    assert utils.is_within(tmp_path, tmp_path)
    assert not utils.is_within(tmp_path.parent, tmp_path)
    assert not utils.is_within(Path("/elsewhere/x"), tmp_path)


def test_output_path_for(tmp_path):
    src = tmp_path / "src"
    out = tmp_path / "out"
    assert utils.output_path_for(src, out, src / "docs" / "a.md") == out / "docs" / "a.html"
    assert utils.output_path_for(src, out, src / "index.html") == out / "index.html"
    assert utils.output_path_for(src, out, src / "img" / "logo.png") == out / "img" / "logo.png"


def test_read_source_keeps_line_endings(tmp_path):
    path = tmp_path / "crlf.html"
    path.write_bytes(b"<p>a</p>\r\n<p>b</p>\r\n")
    assert utils.read_source(path) == "<p>a</p>\r\n<p>b</p>\r\n"


def test_atomic_write_text(tmp_path):
    target = tmp_path / "deep" / "dir" / "index.html"
    utils.atomic_write_text(target, "<p>x</p>\r\n")
    assert target.read_bytes() == b"<p>x</p>\r\n"

    utils.atomic_write_text(target, "<p>y</p>")
    assert target.read_text(encoding="utf-8") == "<p>y</p>"
    # no temporary files left behind
    assert [p.name for p in target.parent.iterdir()] == ["index.html"]


def test_atomic_copy_is_byte_exact(tmp_path):
    source = tmp_path / "logo.png"
    source.write_bytes(b"\x89PNG\r\n\x1a\n\x00\xff")
    dest = tmp_path / "out" / "img" / "logo.png"
    utils.atomic_copy(source, dest)
    assert dest.read_bytes() == source.read_bytes()
    assert [p.name for p in dest.parent.iterdir()] == ["logo.png"]


def test_remove_output_prunes_empty_parents(tmp_path):
    out = tmp_path / "out"
    target = out / "blog" / "2024" / "post.html"
    target.parent.mkdir(parents=True)
    target.write_text("x", encoding="utf-8")
    (out / "index.html").write_text("i", encoding="utf-8")

    assert utils.remove_output(target, out)
    assert not (out / "blog").exists()
    assert out.exists()
    assert utils.remove_output(target, out) is False


def test_remove_output_keeps_non_empty_parents(tmp_path):
    out = tmp_path / "out"
    (out / "blog").mkdir(parents=True)
    (out / "blog" / "a.html").write_text("a", encoding="utf-8")
    (out / "blog" / "b.html").write_text("b", encoding="utf-8")
    utils.remove_output(out / "blog" / "a.html", out)
    assert (out / "blog" / "b.html").exists()


def test_remove_output_directory(tmp_path):
    out = tmp_path / "out"
    (out / "docs" / "nested").mkdir(parents=True)
    (out / "docs" / "nested" / "a.html").write_text("a", encoding="utf-8")
    assert utils.remove_output(out / "docs", out)
    assert not (out / "docs").exists()


def test_escape_html():
    assert escape_html('<a href="x">Tom & Jerry</a>') == (
        "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&lt;/a&gt;"
    )
    assert escape_html('"q"', quote=False) == '"q"'


def test_insert_before_body_end():
    assert insert_before_body_end("<body>Hi</body>", "<s>") == "<body>Hi<s></body>"
    assert insert_before_body_end("<BODY>Hi</ BODY >", "<s>") == "<BODY>Hi<s></ BODY >"
    assert insert_before_body_end("<p>x</p>", "<s>") == "<p>x</p><s>"
    # only the last closing tag receives the snippet
    html = "<body><pre></body></pre></body>"
    assert insert_before_body_end(html, "<s>") == "<body><pre></body></pre><s></body>"


def test_load_config_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config == DEFAULT_CONFIG
    config["ignore_files"].append(".extra")
    assert DEFAULT_CONFIG["ignore_files"] == [".gitignore", ".ignore"]


def test_load_config_overlays_yaml(tmp_path):
    (tmp_path / "stitch.yaml").write_text(
        "output_dir: public\nport: 8000\nignore_files: [.siteignore]\n", encoding="utf-8"
    )
    config = load_config(tmp_path)
    assert config["output_dir"] == "public"
    assert config["port"] == 8000
    assert config["ignore_files"] == [".siteignore"]
    assert config["ws_port"] == 3031


def test_load_config_ignores_non_mapping(tmp_path):
    (tmp_path / "stitch.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    assert load_config(tmp_path) == DEFAULT_CONFIG
    (tmp_path / "stitch.yaml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == DEFAULT_CONFIG


def test_load_config_rejects_invalid_yaml(tmp_path):
    (tmp_path / "stitch.yaml").write_text("output_dir: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_resolve_output_dir(tmp_path):
    assert resolve_output_dir(tmp_path, {"output_dir": "site"}) == (tmp_path / "site").resolve()
    assert resolve_output_dir(tmp_path, {}) == (tmp_path / "_build").resolve()
    absolute = tmp_path / "elsewhere"
    assert resolve_output_dir(tmp_path, {"output_dir": str(absolute)}) == absolute.resolve()
