"""
Resource reference rewriting for one file.

A ``ResourceVersion`` run takes a single file (an HTML page, a stylesheet, a
script or any other asset), finds every resource reference in it, resolves
each one by running the whole pipeline again on the referenced file, and
writes the resulting cache-busted paths back in place. References are resolved
concurrently with ``asyncio.gather``; tokens are only ever mutated in place,
so the output keeps the input order whatever order the resolutions finish in.
"""

import asyncio
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from .fingerprint import compute_path, content_hash
from .options import Options
from .patterns import (
    HTML_TAG_RESOURCE_ATTRS,
    RESOURCE_RE,
    attrs_for_tag,
    is_remote_url,
    looks_like_file_path,
    split_srcset,
)
from .registry import AssetFile
from .tokens import Attr, Token, TokenType, get_attr_value, set_attr_value

if TYPE_CHECKING:
    from .runner import Runner


class ContentKind(Enum):
    MARKUP = "markup"
    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    BINARY = "binary"


SCRIPT_EXTS = ("js", "mjs")


def content_kind(file: AssetFile) -> ContentKind:
    if file.is_tpl:
        return ContentKind.MARKUP
    if file.extname in SCRIPT_EXTS:
        return ContentKind.SCRIPT
    if file.extname == "css":
        return ContentKind.STYLESHEET
    return ContentKind.BINARY


@dataclass
class Result:
    """What one run produced: the path referrers should use and/or new content."""

    filepath: Optional[str] = None
    content: Optional[str] = None
    ast: Optional[List[Token]] = None


async def async_replace(text: str, pattern: re.Pattern, repl: Callable[[re.Match], Awaitable[str]]) -> str:
    """``pattern.sub`` with a coroutine replacement; all matches resolve concurrently."""
    matches = list(pattern.finditer(text))
    if not matches:
        return text
    replacements = await asyncio.gather(*(repl(m) for m in matches))
    out: List[str] = []
    last = 0
    for m, replacement in zip(matches, replacements):
        out.append(text[last:m.start()])
        out.append(replacement)
        last = m.end()
    out.append(text[last:])
    return "".join(out)


def css_value_jobs(tokens: List[Token]) -> Iterator[Tuple[Token, str]]:
    """Pair every CSS value token with the property it belongs to.

    The walk is a two-state machine: no property seen yet, or a property name
    waiting for its value. A value consumes the pending name; values without
    one are skipped.
    """
    pending: Optional[str] = None
    for token in tokens:
        if token.type is TokenType.CSS_PROPERTY:
            pending = token.value.lower()
        elif token.type is TokenType.CSS_VALUE and pending is not None:
            yield token, pending
            pending = None


class ResourceVersion:
    """One stateless rewriting pass over ``file``."""

    def __init__(self, file: AssetFile, runner: "Runner", options: Options, chain: Tuple[str, ...] = ()):
        self.file = file
        self.runner = runner
        self.options = options
        # files currently being processed above this one, this one included
        self.chain = chain or (file.path,)

    def _dbg(self, msg: str, *args) -> None:
        self.runner.dbg(msg, *args)

    # -------------------------------
    # Entry points
    # -------------------------------

    async def run(self) -> Result:
        kind = content_kind(self.file)
        self._dbg("[run] %s kind=%s", self.file.path, kind.value)
        handler = getattr(self, KIND_HANDLERS[kind])
        return await handler()

    def update(self, result: Result) -> None:
        """Write ``result`` back into the file it was computed from."""
        kind = content_kind(self.file)
        if kind in (ContentKind.MARKUP, ContentKind.STYLESHEET):
            self.file.set_ast(result.ast)
        elif kind is ContentKind.SCRIPT:
            self.file.set_content(result.content)

    # -------------------------------
    # Content kinds
    # -------------------------------

    async def parse_html(self) -> Result:
        tokens = self.file.get_ast()
        jobs = []
        for token in tokens:
            handler = MARKUP_TOKEN_HANDLERS[token.type]
            if handler is not None:
                jobs.append(getattr(self, handler)(token))
        await asyncio.gather(*jobs)
        return Result(ast=tokens)

    async def parse_js(self) -> Result:
        content = self.file.get_content("utf8")
        content = await self.parse_js_resource(content)
        filepath = await self.get_file_path(content, self.file.path)
        return Result(filepath=filepath, content=content)

    async def parse_css(self) -> Result:
        tokens = self.file.get_ast()
        await asyncio.gather(*(self._rewrite_css_value(token, prop) for token, prop in css_value_jobs(tokens)))

        if self.file.virtual:
            return Result(ast=tokens)

        self.file.set_ast(tokens)
        content = self.file.get_content("utf8")
        filepath = await self.get_file_path(content, self.file.path)
        return Result(filepath=filepath, ast=tokens)

    async def parse_binary(self) -> Result:
        content = self.file.get_content("binary")
        filepath = await self.get_file_path(content, self.file.path)
        return Result(filepath=filepath)

    # -------------------------------
    # Script
    # -------------------------------

    async def parse_js_resource(self, content: str) -> str:
        """Rewrite ``{"cdn": "path/to/a.png"}.cdn`` markers into ``"path/to/a.png?v=.."``."""

        async def repl(m: re.Match) -> str:
            filepath = await self.resolve(m.group(3))
            return f'"{filepath}"'

        return await async_replace(content, RESOURCE_RE.cdn, repl)

    # -------------------------------
    # Stylesheet
    # -------------------------------

    async def _rewrite_css_value(self, token: Token, prop: str) -> None:
        token.value = await self.replace_css_resource(token.value, prop)

    async def replace_css_resource(self, value: str, prop: Optional[str] = None) -> str:
        """Rewrite the resource references of one CSS value.

        ``filter`` values use the IE ``src=`` syntax, ``src`` values (font-face)
        keep their ``?#iefix``/``#id`` suffix, everything else is treated as a
        background image.
        """
        if prop == "filter":

            async def repl(m: re.Match) -> str:
                quote, path = m.group(1), m.group(2)
                if not is_remote_url(path):
                    path = await self.resolve(path)
                return f"src={quote}{path}{quote}"

            return await async_replace(value, RESOURCE_RE.filter, repl)

        if prop == "src":

            async def repl(m: re.Match) -> str:
                quote, path, suffix = m.group(1), m.group(2), m.group(3)
                if not is_remote_url(path):
                    path = await self.resolve(path)
                return f"url({quote}{path}{suffix}{quote})"

            return await async_replace(value, RESOURCE_RE.font, repl)

        async def repl(m: re.Match) -> str:
            quote, path = m.group(1), m.group(2)
            if not is_remote_url(path):
                path = await self.resolve(path)
            return f"url({quote}{path}{quote})"

        return await async_replace(value, RESOURCE_RE.background, repl)

    # -------------------------------
    # Markup tokens
    # -------------------------------

    def _resource_attrs(self, tag: str) -> List[str]:
        names = attrs_for_tag(HTML_TAG_RESOURCE_ATTRS, tag) + list(self.options.tag_attrs.get(tag, ()))
        return list(dict.fromkeys(name.lower() for name in names))

    async def parse_html_tag_start(self, token: Token) -> Token:
        attrs: List[Attr] = token.ext["attrs"]
        jobs = [self._rewrite_attr(attrs, name) for name in self._resource_attrs(token.ext["tag_lower"])]

        style = get_attr_value(attrs, "style")
        if style:
            jobs.append(self._rewrite_style_attr(attrs, style))

        await asyncio.gather(*jobs)
        return token

    async def _rewrite_attr(self, attrs: List[Attr], name: str) -> None:
        value = get_attr_value(attrs, name)
        if not value or is_remote_url(value):
            return

        # <img srcset="/img/a.jpg 640w 1x, /img/a@2x.jpg 2x">
        if name == "srcset":
            await self._rewrite_srcset(attrs, name, value)
            return

        # skip template syntax such as src="{{ img }}" or src="<%= path %>"
        if not looks_like_file_path(value):
            self._dbg("[html] skip %s=%s", name, value)
            return

        set_attr_value(attrs, name, await self.resolve(value))

    async def _rewrite_srcset(self, attrs: List[Attr], name: str, value: str) -> None:
        async def rewrite_item(lead: str, path: str, tail: str, separator: str) -> str:
            if path and not is_remote_url(path):
                path = await self.resolve(path)
            return f"{lead}{path}{tail}{separator}"

        items = await asyncio.gather(*(rewrite_item(*item) for item in split_srcset(value)))
        set_attr_value(attrs, name, "".join(items))

    async def _rewrite_style_attr(self, attrs: List[Attr], style: str) -> None:
        set_attr_value(attrs, "style", await self.replace_css_resource(style))

    async def parse_html_tag_script(self, token: Token) -> Token:
        start = token.ext["start"]
        if start.ext["is_external"]:
            token.ext["start"] = await self.parse_html_tag_start(start)
            return token
        content = token.ext["content"]
        content.value = await self.parse_js_resource(content.value)
        return token

    async def parse_html_tag_style(self, token: Token) -> Token:
        """Reprocess an inline ``<style>`` body as a virtual stylesheet.

        The virtual file lives next to the page so relative ``url()``
        references resolve the same way they would from the page itself.
        """
        content = token.ext["content"]
        tokens = content.ext.get("tokens") or content.value
        name = content_hash(content.value, 32) + ".css"
        filepath = posixpath.join(posixpath.dirname(self.file.path), name)
        file = self.runner.registry.add_file(filepath, tokens, virtual=True)
        result = await self.runner.invoke(file, chain=self.chain)
        content.ext["tokens"] = result.ast
        return token

    # -------------------------------
    # Resolution
    # -------------------------------

    async def get_file_path(self, content, filepath: str) -> str:
        """Fingerprint ``content`` and register the renamed artifact if needed."""
        fingerprint = compute_path(content, filepath, self.options, self.file.prop("origin_path"))
        if fingerprint.artifact is not None:
            self.runner.registry.add_file(fingerprint.artifact.path, fingerprint.artifact.content)
            self._dbg("[rename] %s -> %s", filepath, fingerprint.artifact.path)
        return fingerprint.final_path

    async def resolve(self, filepath: str) -> str:
        """Final path for a local reference written as ``filepath`` in this file.

        Excluded paths come back unchanged. Anything else runs the whole
        pipeline on the referenced file; its failures propagate to the caller.
        """
        if self.options.exclude and self.runner.registry.match(filepath, self.options.exclude):
            self._dbg("[resolve] excluded %s", filepath)
            return filepath
        result = await self.runner.invoke(
            filepath,
            origin_path=filepath,
            referrer=self.file.path,
            chain=self.chain,
        )
        return result.filepath or filepath


KIND_HANDLERS: Dict[ContentKind, str] = {
    ContentKind.MARKUP: "parse_html",
    ContentKind.SCRIPT: "parse_js",
    ContentKind.STYLESHEET: "parse_css",
    ContentKind.BINARY: "parse_binary",
}

# Every token type must be listed; None means the token carries no references.
MARKUP_TOKEN_HANDLERS: Dict[TokenType, Optional[str]] = {
    TokenType.HTML_TAG_START: "parse_html_tag_start",
    TokenType.HTML_TAG_SCRIPT: "parse_html_tag_script",
    TokenType.HTML_TAG_STYLE: "parse_html_tag_style",
    TokenType.HTML_TAG_END: None,
    TokenType.HTML_TEXT: None,
    TokenType.HTML_COMMENT: None,
    TokenType.HTML_DOCTYPE: None,
    TokenType.CSS_PROPERTY: None,
    TokenType.CSS_VALUE: None,
    TokenType.CSS_RAW: None,
}

assert set(KIND_HANDLERS) == set(ContentKind), "unhandled content kind"
assert set(MARKUP_TOKEN_HANDLERS) == set(TokenType), "unhandled token type"
