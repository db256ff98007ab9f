"""
Tests for the resource reference patterns.
"""

from plugins.resource_version.patterns import (
    HTML_TAG_RESOURCE_ATTRS,
    RESOURCE_RE,
    attrs_for_tag,
    is_remote_url,
    looks_like_file_path,
    split_srcset,
)


class TestPatterns:
    """Matching of references in CSS, JS and HTML attributes."""

    def test_remote_urls(self):
        """Test: absolute, protocol-relative and data URLs count as remote."""
        assert is_remote_url("https://cdn.example.com/a.png")
        assert is_remote_url("http://example.com/a.png")
        assert is_remote_url("//cdn.example.com/a.png")
        assert is_remote_url("data:image/png;base64,AAAA")
        assert not is_remote_url("/img/a.png")
        assert not is_remote_url("img/a.png")
        assert not is_remote_url("../img/a.png")

    def test_bare_file_path_check(self):
        """Test: template syntax and query strings fail the file path check."""
        assert looks_like_file_path("/static/img/404.jpg")
        assert looks_like_file_path("../css/site.css")
        assert not looks_like_file_path("{{ img }}")
        assert not looks_like_file_path("/img/{{ name }}")
        assert not looks_like_file_path("/static/app.js?x=1")
        assert not looks_like_file_path("/static/")

    def test_background_pattern(self):
        """Test: background url() with quotes and an existing query string."""
        m = RESOURCE_RE.background.search('background: url( "/img/a.png?v=1" ) no-repeat')
        assert m is not None
        assert m.group(1) == '"'
        assert m.group(2) == "/img/a.png"

        assert RESOURCE_RE.background.search("url(https://cdn.example.com/a.png)") is None
        assert RESOURCE_RE.background.search("url(/fonts/a.woff)") is None

    def test_font_pattern_keeps_suffix(self):
        """Test: font url() splits the path from its ?#iefix suffix."""
        m = RESOURCE_RE.font.search("src: url('../fonts/a.eot?#iefix') format('embedded-opentype')")
        assert m is not None
        assert m.group(1) == "'"
        assert m.group(2) == "../fonts/a.eot"
        assert m.group(3) == "?#iefix"

        matches = RESOURCE_RE.font.findall("url(a.woff2) format('woff2'), url(a.ttf) format('truetype')")
        assert [m[1] for m in matches] == ["a.woff2", "a.ttf"]

    def test_filter_pattern(self):
        """Test: IE AlphaImageLoader src= is located."""
        value = "progid:DXImageTransform.Microsoft.AlphaImageLoader(src='img/a.png', sizingMethod='scale')"
        m = RESOURCE_RE.filter.search(value)
        assert m is not None
        assert m.group(0) == "src='img/a.png'"
        assert m.group(2) == "img/a.png"

    def test_cdn_pattern(self):
        """Test: the JS {cdn: ...}.cdn marker is located with either quoting."""
        m = RESOURCE_RE.cdn.search('var logo = {"cdn": "/img/logo.png"}.cdn;')
        assert m is not None
        assert m.group(3) == "/img/logo.png"

        m = RESOURCE_RE.cdn.search("var logo = { cdn : '/img/logo.png?v=1' }.cdn;")
        assert m is not None
        assert m.group(3) == "/img/logo.png"

        assert RESOURCE_RE.cdn.search('var x = {"cdn": "/img/logo.png"};') is None

    def test_tag_attrs_table(self):
        """Test: str and list entries of a tag table both come back as lists."""
        assert attrs_for_tag(HTML_TAG_RESOURCE_ATTRS, "img") == ["src", "srcset"]
        assert attrs_for_tag(HTML_TAG_RESOURCE_ATTRS, "link") == ["href"]
        assert attrs_for_tag(HTML_TAG_RESOURCE_ATTRS, "div") == []

    def test_split_srcset_keeps_separators(self):
        """Test: srcset items keep descriptors and separators verbatim."""
        value = "/a.jpg 640w 1x,  /a@2x.jpg 2x , /a@3x.jpg"
        items = split_srcset(value)

        assert [item[1] for item in items] == ["/a.jpg", "/a@2x.jpg", "/a@3x.jpg"]
        assert [item[2] for item in items] == [" 640w 1x", " 2x", ""]
        assert "".join("".join(item) for item in items) == value
