"""
Tests for the file registry and the option merging.
"""

import pytest

from plugins.resource_version.errors import (
    MissingResourceError,
    RegistryConflictError,
    ResourceVersionError,
)
from plugins.resource_version.options import Options
from plugins.resource_version.registry import AssetFile, FileRegistry
from plugins.resource_version.tokens import tokenize_css


class TestFileRegistry:
    """Path handling, lookups and registration."""

    def test_normalize(self):
        """Test: query, fragment, leading '/' and '..' hops are removed."""
        assert FileRegistry.normalize("/img/a.png?v=1#x") == "img/a.png"
        assert FileRegistry.normalize("css/../img/a.png") == "img/a.png"
        assert FileRegistry.normalize("/../a.png") == "a.png"
        assert FileRegistry.normalize("img/my%20logo.png?v=1") == "img/my logo.png"

    def test_resolve(self, tmp_path):
        """Test: relative references resolve against the referring file."""
        registry = FileRegistry(tmp_path)
        assert registry.resolve("/img/a.png", "docs/index.html") == "img/a.png"
        assert registry.resolve("../img/a.png", "docs/index.html") == "img/a.png"
        assert registry.resolve("a.png", "docs/index.html") == "docs/a.png"
        assert registry.resolve("a.png") == "a.png"

    def test_match(self):
        """Test: exclude globs match with or without the leading '/'."""
        assert FileRegistry.match("/static/cdn/a.png", ["static/cdn/*"])
        assert FileRegistry.match("static/cdn/a.png", ["/static/cdn/*"])
        assert FileRegistry.match("a.svg", ["*.svg"])
        assert not FileRegistry.match("/img/a.png", ["*.svg"])
        assert not FileRegistry.match("/img/a.png", [])

    def test_get_file(self, tmp_path):
        """Test: files are read fresh from disk; missing or outside paths fail."""
        (tmp_path / "a.png").write_bytes(b"png")
        (tmp_path.parent / "secret.png").write_bytes(b"secret")
        registry = FileRegistry(tmp_path)

        file = registry.get_file("/a.png")
        assert file.path == "a.png"
        assert file.get_content("binary") == b"png"
        assert registry.get_file("a.png") is not file

        with pytest.raises(MissingResourceError):
            registry.get_file("b.png", "index.html")
        with pytest.raises(MissingResourceError):
            registry.get_file("../secret.png")

    def test_add_file_conflicts(self, tmp_path):
        """Test: same bytes under one path are fine, different bytes conflict."""
        registry = FileRegistry(tmp_path)
        registry.add_file("/a_1.png", b"one")
        registry.add_file("a_1.png", b"one")
        with pytest.raises(RegistryConflictError):
            registry.add_file("a_1.png", b"two")
        assert registry.artifacts == {"a_1.png": b"one"}

    def test_virtual_files(self, tmp_path):
        """Test: virtual units are looked up but never written out."""
        registry = FileRegistry(tmp_path)
        file = registry.add_file("abc.css", tokenize_css("a { color: red }"), virtual=True)
        assert file.virtual
        assert registry.get_file("abc.css").get_content("utf8") == "a { color: red }"

        with pytest.raises(RegistryConflictError):
            registry.add_file("abc.css", "b { color: blue }", virtual=True)

        registry.commit(file)
        assert registry.flush() == 0
        assert not (tmp_path / "abc.css").exists()

    def test_commit_and_flush(self, tmp_path):
        """Test: committed content and artifacts land in site_dir."""
        registry = FileRegistry(tmp_path)
        page = AssetFile("docs/index.html", content=b"<p>old</p>")
        page.set_content("<p>new</p>")
        registry.commit(page)
        registry.add_file("img/a_1.png", b"png")

        assert registry.flush() == 2
        assert (tmp_path / "docs" / "index.html").read_text(encoding="utf8") == "<p>new</p>"
        assert (tmp_path / "img" / "a_1.png").read_bytes() == b"png"


class TestAssetFile:
    """Content and token tree access."""

    def test_ast_round_trip(self):
        """Test: content is rendered from the token tree once one is set."""
        file = AssetFile("a.css", content=b"a { color: red }")
        tokens = file.get_ast()
        tokens[-2].value = "blue "
        file.set_ast(tokens)
        assert file.get_content("utf8") == "a { color: blue }"

    def test_binary_files_have_no_ast(self):
        """Test: asking a binary file for tokens is an error."""
        with pytest.raises(ResourceVersionError):
            AssetFile("a.png", content=b"png").get_ast()


class TestOptions:
    """Merging and validating the options."""

    def test_defaults(self):
        """Test: an empty config gives query/5."""
        options = Options.from_config({})
        assert options.type == "query"
        assert options.length == 5
        assert options.exclude == ()
        assert options.tag_attrs == {}

    def test_normalization(self):
        """Test: str values become tuples and tag names are lowercased."""
        options = Options.from_config({
            "type": "rename",
            "length": 8,
            "exclude": "/cdn/*",
            "tag_attrs": {"DIV": "data-bg", "a": ["data-img", "data-src"]},
            "unrelated": True,
        })
        assert options.type == "rename"
        assert options.length == 8
        assert options.exclude == ("/cdn/*",)
        assert options.tag_attrs == {"div": ("data-bg",), "a": ("data-img", "data-src")}

    @pytest.mark.parametrize("config", [{"type": "hash"}, {"length": 0}, {"length": 33}, {"length": "5"}])
    def test_invalid(self, config):
        """Test: unknown strategies and out of range lengths are rejected."""
        with pytest.raises(ResourceVersionError):
            Options.from_config(config)
