"""
File registry backed by a built MkDocs ``site_dir``.

Files are always handed out fresh from the pristine build output: rewritten
content is only recorded (``commit``) and written back by ``flush`` once the
whole build has been processed, so every page sees the same input no matter
in which order the pages or their references get processed.
"""

import fnmatch
import logging
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import unquote

from .errors import ContentDecodeError, MissingResourceError, RegistryConflictError, ResourceVersionError
from .tokens import Token, render_css, render_html, tokenize_css, tokenize_html

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

TPL_EXTS = ("html", "htm")
AST_EXTS = TPL_EXTS + ("css",)

Content = Union[str, bytes]


class AssetFile:
    """One file (real or virtual) as seen by a single engine run."""

    def __init__(
        self,
        path: str,
        content: Optional[Content] = None,
        ast: Optional[List[Token]] = None,
        virtual: bool = False,
        props: Optional[Dict[str, str]] = None,
    ):
        self.path = path
        self.virtual = virtual
        self.props: Dict[str, str] = dict(props or {})
        self._content = content
        self._ast = ast

    def __repr__(self) -> str:
        return f"AssetFile({self.path!r}, virtual={self.virtual})"

    @property
    def extname(self) -> str:
        return posixpath.splitext(self.path)[1].lstrip(".").lower()

    @property
    def is_tpl(self) -> bool:
        return self.extname in TPL_EXTS

    def prop(self, name: str, default=None):
        return self.props.get(name, default)

    def get_content(self, encoding: str = "utf8") -> Content:
        """Return the file text (``"utf8"``) or its raw bytes (``"binary"``).

        Once an AST has been set, the content is rendered from it.
        """
        if self._ast is not None:
            self._content = self._render(self._ast)
        content = self._content if self._content is not None else b""
        if encoding == "binary":
            return content.encode("utf8") if isinstance(content, str) else content
        if isinstance(content, bytes):
            try:
                return content.decode("utf8")
            except UnicodeDecodeError as e:
                raise ContentDecodeError(self.path, str(e)) from e
        return content

    def set_content(self, value: Content) -> None:
        self._content = value
        self._ast = None

    def get_ast(self) -> List[Token]:
        if self._ast is None:
            if self.extname not in AST_EXTS:
                raise ResourceVersionError(f"[resource_version] no token tree for {self.path}")
            text = self.get_content("utf8")
            self._ast = tokenize_html(text) if self.is_tpl else tokenize_css(text)
        return self._ast

    def set_ast(self, tokens: List[Token]) -> None:
        self._ast = tokens

    def _render(self, tokens: List[Token]) -> str:
        if self.is_tpl:
            return render_html(tokens)
        return render_css(tokens)


class FileRegistry:
    """Looks up build output files and collects what has to be written back."""

    def __init__(self, site_dir: Union[str, Path]):
        self.site_dir = Path(site_dir).resolve()
        self._virtual_source: Dict[str, str] = {}
        self._artifacts: Dict[str, bytes] = {}
        self._committed: Dict[str, bytes] = {}

    # -------------------------------
    # Paths
    # -------------------------------

    @staticmethod
    def normalize(path: str) -> str:
        """Registry key for ``path``: no query or fragment, no leading '/'.

        Percent-escapes are decoded (``my%20logo.png`` is ``my logo.png`` on
        disk). ``..`` hops are collapsed; root-relative paths cannot climb
        above the root.
        """
        path = path.split("#", 1)[0].split("?", 1)[0]
        path = unquote(path).replace("\\", "/")
        return posixpath.normpath(path).lstrip("/")

    def resolve(self, reference: str, referrer: Optional[str] = None) -> str:
        """Turn a reference written in ``referrer`` into a registry path.

        Root-relative references resolve against the site root, anything else
        against the directory of the referring file.
        """
        if reference.startswith("/") or not referrer:
            return self.normalize(reference)
        base = posixpath.dirname(self.normalize(referrer))
        return self.normalize(posixpath.join(base, reference))

    @staticmethod
    def match(path: str, patterns: Iterable[str]) -> bool:
        """True if ``path`` (with or without its leading '/') matches any glob."""
        stripped = path.lstrip("/")
        for pattern in patterns or ():
            if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(stripped, pattern.lstrip("/")):
                return True
        return False

    # -------------------------------
    # Lookup / registration
    # -------------------------------

    def get_file(self, path: str, referrer: str = "") -> AssetFile:
        """Return a fresh ``AssetFile`` for ``path`` read from the pristine build."""
        path = self.normalize(path)
        if path in self._virtual_source:
            return AssetFile(path, content=self._virtual_source[path], virtual=True)

        abs_path = (self.site_dir / path).resolve()
        try:
            abs_path.relative_to(self.site_dir)
        except ValueError:
            raise MissingResourceError(path, referrer)
        if not abs_path.is_file():
            raise MissingResourceError(path, referrer)
        return AssetFile(path, content=abs_path.read_bytes())

    def add_file(self, path: str, content: Union[Content, List[Token]], virtual: bool = False) -> AssetFile:
        """Register a new artifact, or a virtual unit that is never written out.

        Registering the same path twice is fine as long as the content matches.
        """
        path = self.normalize(path)
        if virtual:
            if isinstance(content, list):
                file = AssetFile(path, ast=content, virtual=True)
            else:
                file = AssetFile(path, content=content, virtual=True)
            source = file.get_content("utf8")
            existing = self._virtual_source.get(path)
            if existing is not None and existing != source:
                raise RegistryConflictError(path)
            self._virtual_source[path] = source
            return file

        data = content.encode("utf8") if isinstance(content, str) else bytes(content)
        existing_data = self._artifacts.get(path)
        if existing_data is not None and existing_data != data:
            raise RegistryConflictError(path)
        self._artifacts[path] = data
        return AssetFile(path, content=data)

    def commit(self, file: AssetFile) -> None:
        """Record the rewritten content of a processed file."""
        if file.virtual:
            return
        self._committed[file.path] = file.get_content("binary")

    @property
    def artifacts(self) -> Dict[str, bytes]:
        return dict(self._artifacts)

    @property
    def committed(self) -> Dict[str, bytes]:
        return dict(self._committed)

    def flush(self) -> int:
        """Write committed files and registered artifacts into ``site_dir``."""
        written = 0
        for path, data in list(self._committed.items()) + list(self._artifacts.items()):
            target = self.site_dir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            logger.debug("[resource_version] wrote %s (%d bytes)", path, len(data))
            written += 1
        return written
