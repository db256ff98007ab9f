"""
Patterns that locate resource references inside HTML, CSS and JS content.
"""

import posixpath
import re
from types import SimpleNamespace
from typing import Dict, List, Tuple, Union

IMAGE_EXTS = r"png|jpg|jpeg|gif|ico|cur|webp|svg|avif|bmp"
FONT_EXTS = r"eot|woff2?|ttf|otf|svg"

RESOURCE_RE = SimpleNamespace(
    # background: url(/img/a.png) / url("../img/a.png?v=1")
    # Groups: 1) quote, 2) path
    background=re.compile(
        rf"""url\s*\(\s*(['"]?)([\w\-/.@]+\.(?:{IMAGE_EXTS}))(?:\?[^?'"\)\s]*)?\1\s*\)""",
        re.IGNORECASE,
    ),
    # @font-face src: url(a.eot?#iefix) / url('a.svg#font')
    # Groups: 1) quote, 2) path, 3) suffix kept as-is
    font=re.compile(
        rf"""url\s*\(\s*(['"]?)([^'"?#)\s]+\.(?:{FONT_EXTS}))([^\s)'"]*)\1\s*\)""",
        re.IGNORECASE,
    ),
    # IE filter: progid:DXImageTransform.Microsoft.AlphaImageLoader(src='a.png')
    # Groups: 1) quote, 2) path
    filter=re.compile(
        rf"""src\s*=\s*(['"]?)([^'"\s,)]+\.(?:{IMAGE_EXTS}))(?:\?[^?'"\)\s]*)?\1""",
        re.IGNORECASE,
    ),
    # JS marker: {"cdn": "/static/img/a.png"}.cdn
    # Groups: 1) key quote, 2) value quote, 3) path
    cdn=re.compile(
        r"""\{\s*(['"]?)cdn\1\s*:\s*(['"])([\w\-/.@]+\.\w+)(?:\?[^?'"\)\s]*)?\2\s*\}\.cdn""",
        re.IGNORECASE,
    ),
)

# Built-in tag -> attribute(s) that carry a resource path.
HTML_TAG_RESOURCE_ATTRS: Dict[str, Union[str, List[str]]] = {
    "img": ["src", "srcset"],
    "script": "src",
    "link": "href",
    "embed": "src",
    "object": "data",
    "source": ["src", "srcset"],
    "video": ["src", "poster"],
    "audio": "src",
    "track": "src",
    "input": "src",
}

REMOTE_URL_RE = re.compile(r"^(?:[a-z][a-z0-9+.\-]*:|//)", re.IGNORECASE)
FILE_EXT_RE = re.compile(r"^\.\w+$")
SRCSET_SEPARATOR_RE = re.compile(r"(\s*,\s*)")
SRCSET_ITEM_RE = re.compile(r"(\s*)(\S*)(.*)", re.DOTALL)


def is_remote_url(path: str) -> bool:
    """True for absolute (``https://``, ``data:``) and protocol-relative URLs."""
    return bool(REMOTE_URL_RE.match(path.strip()))


def looks_like_file_path(path: str) -> bool:
    """Return True if ``path`` ends in a plain ``.ext``.

    Template syntax, query strings and extension-less paths fail here and are
    left untouched by the caller.
    """
    ext = posixpath.splitext(path)[1]
    return bool(FILE_EXT_RE.match(ext))


def attrs_for_tag(table: Dict[str, Union[str, List[str]]], tag: str) -> List[str]:
    """Attribute names listed for ``tag`` in a tag -> attr(s) table."""
    attrs = table.get(tag) or []
    if isinstance(attrs, str):
        attrs = [attrs]
    return list(attrs)


def split_srcset(value: str) -> List[Tuple[str, str, str, str]]:
    """Split a srcset into ``(lead, path, tail, separator)`` items.

    ``tail`` is everything after the path (descriptors and their spacing) and
    ``separator`` is the comma run that followed the item, so joining the
    pieces of every item gives back the original string.
    """
    parts = SRCSET_SEPARATOR_RE.split(value)
    items: List[Tuple[str, str, str, str]] = []
    for i in range(0, len(parts), 2):
        separator = parts[i + 1] if i + 1 < len(parts) else ""
        m = SRCSET_ITEM_RE.match(parts[i])
        items.append((m.group(1), m.group(2), m.group(3), separator))
    return items
