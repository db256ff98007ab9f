"""
Token trees for HTML pages and CSS stylesheets.

The tokenizers are deliberately shallow: they only separate out what the
resource rewriter needs (start tags with their attributes, inline
``<script>``/``<style>`` blocks, CSS property/value pairs) and keep every other
byte as raw text, so rendering an untouched tree gives back the input exactly.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TokenType(Enum):
    HTML_TAG_START = "html_tag_start"
    HTML_TAG_END = "html_tag_end"
    HTML_TAG_SCRIPT = "html_tag_script"
    HTML_TAG_STYLE = "html_tag_style"
    HTML_TEXT = "html_text"
    HTML_COMMENT = "html_comment"
    HTML_DOCTYPE = "html_doctype"
    CSS_PROPERTY = "css_property"
    CSS_VALUE = "css_value"
    CSS_RAW = "css_raw"


@dataclass
class Token:
    type: TokenType
    value: str = ""
    ext: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Attr:
    """One attribute of a start tag, with the spacing it was written with."""

    name: str
    value: Optional[str] = None
    quote: str = '"'
    prefix: str = " "
    separator: str = "="

    def render(self) -> str:
        if self.value is None:
            return f"{self.prefix}{self.name}"
        return f"{self.prefix}{self.name}{self.separator}{self.quote}{self.value}{self.quote}"


# -------------------------------
# Attribute accessors
# -------------------------------


def _find_attr(attrs: List[Attr], name: str) -> Optional[Attr]:
    name = name.lower()
    for attr in attrs:
        if attr.name.lower() == name:
            return attr
    return None


def get_attr_value(attrs: List[Attr], name: str) -> Optional[str]:
    attr = _find_attr(attrs, name)
    return attr.value if attr else None


def set_attr_value(attrs: List[Attr], name: str, value: str) -> None:
    """Set ``name`` to ``value``, appending the attribute if it is missing."""
    attr = _find_attr(attrs, name)
    if attr is None:
        attrs.append(Attr(name=name, value=value))
        return
    if attr.value is None:
        attr.separator = "="
        attr.quote = '"'
    elif attr.quote == "" and re.search(r"[\s\"'=<>`]", value):
        attr.quote = '"'
    attr.value = value


# -------------------------------
# HTML
# -------------------------------

HTML_COMMENT_RE = re.compile(r"<!--.*?(?:-->|$)", re.DOTALL)
HTML_DOCTYPE_RE = re.compile(r"<[!?][^>]*>")
HTML_END_TAG_RE = re.compile(r"</([a-zA-Z][\w:\-]*)\s*>")
HTML_START_TAG_RE = re.compile(
    r"""<([a-zA-Z][\w:\-]*)((?:\s+[^\s"'=/>]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'>]+))?)*)(\s*/?)>"""
)
HTML_ATTR_RE = re.compile(
    r"""(\s+)([^\s"'=/>]+)(?:(\s*=\s*)(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)
HTML_TEXT_RE = re.compile(r"[^<]+|<")

RAW_TEXT_TAGS = {"script": TokenType.HTML_TAG_SCRIPT, "style": TokenType.HTML_TAG_STYLE}


def _parse_attrs(text: str) -> List[Attr]:
    attrs: List[Attr] = []
    for m in HTML_ATTR_RE.finditer(text):
        prefix, name, separator = m.group(1), m.group(2), m.group(3)
        if separator is None:
            attrs.append(Attr(name=name, value=None, quote="", prefix=prefix, separator=""))
        elif m.group(4) is not None:
            attrs.append(Attr(name=name, value=m.group(4), quote='"', prefix=prefix, separator=separator))
        elif m.group(5) is not None:
            attrs.append(Attr(name=name, value=m.group(5), quote="'", prefix=prefix, separator=separator))
        else:
            attrs.append(Attr(name=name, value=m.group(6), quote="", prefix=prefix, separator=separator))
    return attrs


def _start_tag_token(m: re.Match) -> Token:
    attrs = _parse_attrs(m.group(2))
    return Token(
        TokenType.HTML_TAG_START,
        m.group(0),
        {
            "tag": m.group(1),
            "tag_lower": m.group(1).lower(),
            "attrs": attrs,
            "tail": m.group(3),
            "is_external": get_attr_value(attrs, "src") is not None,
        },
    )


def tokenize_html(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    length = len(text)
    while pos < length:
        if text.startswith("<!--", pos):
            m = HTML_COMMENT_RE.match(text, pos)
            tokens.append(Token(TokenType.HTML_COMMENT, m.group(0)))
            pos = m.end()
            continue

        m = HTML_DOCTYPE_RE.match(text, pos)
        if m:
            tokens.append(Token(TokenType.HTML_DOCTYPE, m.group(0)))
            pos = m.end()
            continue

        m = HTML_END_TAG_RE.match(text, pos)
        if m:
            tokens.append(Token(TokenType.HTML_TAG_END, m.group(0), {"tag_lower": m.group(1).lower()}))
            pos = m.end()
            continue

        m = HTML_START_TAG_RE.match(text, pos)
        if m:
            start = _start_tag_token(m)
            pos = m.end()
            block_type = RAW_TEXT_TAGS.get(start.ext["tag_lower"])
            if block_type is None:
                tokens.append(start)
                continue
            end_re = re.compile(rf"</{start.ext['tag_lower']}\s*>", re.IGNORECASE)
            end_m = end_re.search(text, pos)
            body_end = end_m.start() if end_m else length
            body = text[pos:body_end]
            end = end_m.group(0) if end_m else ""
            content = Token(TokenType.HTML_TEXT, body)
            if block_type is TokenType.HTML_TAG_STYLE:
                content.ext["tokens"] = tokenize_css(body)
            tokens.append(
                Token(
                    block_type,
                    text[m.start():body_end + len(end)],
                    {"start": start, "content": content, "end": end},
                )
            )
            pos = body_end + len(end)
            continue

        m = HTML_TEXT_RE.match(text, pos)
        tokens.append(Token(TokenType.HTML_TEXT, m.group(0)))
        pos = m.end()

    # merge stray "<" characters back into the surrounding text
    merged: List[Token] = []
    for token in tokens:
        if token.type is TokenType.HTML_TEXT and merged and merged[-1].type is TokenType.HTML_TEXT:
            merged[-1].value += token.value
        else:
            merged.append(token)
    return merged


def render_tag_start(token: Token) -> str:
    ext = token.ext
    attrs = "".join(attr.render() for attr in ext["attrs"])
    return f"<{ext['tag']}{attrs}{ext['tail']}>"


def render_block(token: Token) -> str:
    """Render a ``<script>``/``<style>`` block token."""
    content = token.ext["content"]
    css_tokens = content.ext.get("tokens")
    body = render_css(css_tokens) if css_tokens is not None else content.value
    return render_tag_start(token.ext["start"]) + body + token.ext["end"]


def render_html(tokens: List[Token]) -> str:
    out: List[str] = []
    for token in tokens:
        if token.type is TokenType.HTML_TAG_START:
            out.append(render_tag_start(token))
        elif token.type in (TokenType.HTML_TAG_SCRIPT, TokenType.HTML_TAG_STYLE):
            out.append(render_block(token))
        else:
            out.append(token.value)
    return "".join(out)


# -------------------------------
# CSS
# -------------------------------

CSS_COMMENT_RE = re.compile(r"/\*.*?(?:\*/|$)", re.DOTALL)
CSS_STRING_RE = re.compile(r""""(?:\\.|[^"\\])*"?|'(?:\\.|[^'\\])*'?""", re.DOTALL)
CSS_DECLARATION_RE = re.compile(
    r"""(\*?-?[_a-zA-Z][-\w]*)(\s*:\s*)"""
    r"""((?:\((?:[^()"']|"[^"]*"|'[^']*')*\)|"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*'|[^;{}()"'])+)"""
    r"""(?=;|}|$)""",
    re.DOTALL,
)
CSS_BLOCK_TEXT_RE = re.compile(r"""\s+|[^{};/"'\s]+|.""", re.DOTALL)
CSS_TOP_TEXT_RE = re.compile(r"""[^{};/"']+|.""", re.DOTALL)


def tokenize_css(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    depth = 0
    length = len(text)
    while pos < length:
        ch = text[pos]
        if text.startswith("/*", pos):
            m = CSS_COMMENT_RE.match(text, pos)
            tokens.append(Token(TokenType.CSS_RAW, m.group(0)))
            pos = m.end()
            continue

        if depth > 0:
            m = CSS_DECLARATION_RE.match(text, pos)
            if m:
                tokens.append(Token(TokenType.CSS_PROPERTY, m.group(1)))
                tokens.append(Token(TokenType.CSS_RAW, m.group(2)))
                tokens.append(Token(TokenType.CSS_VALUE, m.group(3)))
                pos = m.end()
                continue

        if ch in "\"'":
            m = CSS_STRING_RE.match(text, pos)
            tokens.append(Token(TokenType.CSS_RAW, m.group(0)))
            pos = m.end()
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(0, depth - 1)
        if ch in "{};":
            tokens.append(Token(TokenType.CSS_RAW, ch))
            pos += 1
            continue

        text_re = CSS_BLOCK_TEXT_RE if depth > 0 else CSS_TOP_TEXT_RE
        m = text_re.match(text, pos)
        tokens.append(Token(TokenType.CSS_RAW, m.group(0)))
        pos = m.end()
    return tokens


def render_css(tokens: List[Token]) -> str:
    return "".join(token.value for token in tokens)
