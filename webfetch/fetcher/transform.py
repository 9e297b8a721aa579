"""HTML to text / markdown conversion and page metadata extraction.

Everything here is a pure function over an HTML string.  The conversions are
regex rewrites, not a DOM parse: nested or overlapping markup is handled on a
best-effort basis.  :func:`to_markdown` never raises; if a rewrite blows up it
returns :func:`to_plain_text` instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin

from webfetch.fetcher.models import PageMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkdownOptions:
    """Knobs for :func:`to_markdown`.

    ``base_url`` resolves relative link and image targets; ``preserve_links``
    set to ``False`` renders anchors as their bare text.
    """

    strip_scripts: bool = True
    preserve_links: bool = True
    base_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Shared patterns
# ---------------------------------------------------------------------------

_FLAGS = re.IGNORECASE | re.DOTALL

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", _FLAGS)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", _FLAGS)
_NOSCRIPT_RE = re.compile(r"<noscript\b[^>]*>.*?</noscript\s*>", _FLAGS)
_TAG_RE = re.compile(r"<[^>]*>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n")

_TITLE_RE = re.compile(r"<title(?:\s[^>]*)?>(.*?)</title\s*>", _FLAGS)
_H1_RE = re.compile(r"<h1(?:\s[^>]*)?>(.*?)</h1\s*>", _FLAGS)

_ATTR_RE = re.compile(r"""([^\s=/>"']+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""")
_CODE_OPEN_RE = re.compile(r"<code(\s[^>]*)?>", re.IGNORECASE)
_CODE_CLOSE_RE = re.compile(r"</code\s*>", re.IGNORECASE)
_LANGUAGE_RE = re.compile(r"(?:^|\s)(?:language|lang)-([\w+#-]+)")

_META_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
_JSON_LD_RE = re.compile(
    r"""<script\b[^>]*\btype\s*=\s*["']application/ld\+json["'][^>]*>(.*?)</script\s*>""",
    _FLAGS,
)

# Order matters: &amp; is decoded after &lt;/&gt; so "&amp;lt;" stays "&lt;".
_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_NAMED_META_FIELDS = ("description", "keywords", "author", "robots")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def _collapse_blank_lines(text: str) -> str:
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


def _strip_tags(html: str) -> str:
    return _TAG_RE.sub("", html)


def _parse_attrs(tag: str) -> dict[str, str]:
    """Return the attributes of a single start tag, names lower-cased.

    The first occurrence of a repeated attribute wins, as in browsers.
    """
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(tag):
        value = next((g for g in m.group(2, 3, 4) if g is not None), "")
        attrs.setdefault(m.group(1).lower(), value)
    return attrs


def _one_line(text: str) -> str:
    return " ".join(text.split())


def _resolve(target: str, options: MarkdownOptions) -> str:
    if options.base_url:
        return urljoin(options.base_url, target)
    return target


# ---------------------------------------------------------------------------
# Markdown rewrite rules
# ---------------------------------------------------------------------------

_Handler = Callable[[Match[str], MarkdownOptions], str]


def _heading_rule(level: int) -> Tuple[Pattern[str], _Handler]:
    pattern = re.compile(rf"<h{level}(?:\s[^>]*)?>(.*?)</h{level}\s*>", _FLAGS)
    marker = "#" * level

    def handler(m: Match[str], _options: MarkdownOptions) -> str:
        return f"\n\n{marker} {_one_line(m.group(1))}\n\n"

    return pattern, handler


def _link(m: Match[str], options: MarkdownOptions) -> str:
    text = m.group(2).strip()
    href = _parse_attrs(m.group(1)).get("href", "").strip()
    if not href or not options.preserve_links:
        return text
    return f"[{text}]({_resolve(href, options)})"


def _pre_block(m: Match[str], _options: MarkdownOptions) -> str:
    body = m.group(1)
    language = ""
    code_open = _CODE_OPEN_RE.search(body)
    if code_open:
        css_class = _parse_attrs(code_open.group(0)).get("class", "")
        lang_match = _LANGUAGE_RE.search(css_class)
        if lang_match:
            language = lang_match.group(1)
        body = _CODE_CLOSE_RE.sub("", _CODE_OPEN_RE.sub("", body))
    code = body.strip("\n")
    return f"\n\n```{language}\n{code}\n```\n\n"


def _list_item(m: Match[str], _options: MarkdownOptions) -> str:
    return f"- {m.group(1).strip()}\n"


def _image(m: Match[str], options: MarkdownOptions) -> str:
    attrs = _parse_attrs(m.group(0))
    src = attrs.get("src", "").strip()
    if not src:
        return ""
    return f"![{attrs.get('alt', '')}]({_resolve(src, options)})"


def _literal(replacement: str) -> _Handler:
    return lambda _m, _options: replacement


_MARKDOWN_RULES: List[Tuple[Pattern[str], _Handler]] = [
    *(_heading_rule(level) for level in range(1, 7)),
    (
        re.compile(r"<(strong|b)(?:\s[^>]*)?>(.*?)</\1\s*>", _FLAGS),
        lambda m, _o: f"**{m.group(2)}**",
    ),
    (
        re.compile(r"<(em|i)(?:\s[^>]*)?>(.*?)</\1\s*>", _FLAGS),
        lambda m, _o: f"*{m.group(2)}*",
    ),
    (re.compile(r"(<a\s[^>]*>)(.*?)</a\s*>", _FLAGS), _link),
    (re.compile(r"<pre(?:\s[^>]*)?>(.*?)</pre\s*>", _FLAGS), _pre_block),
    (
        re.compile(r"<code(?:\s[^>]*)?>(.*?)</code\s*>", _FLAGS),
        lambda m, _o: f"`{m.group(1)}`",
    ),
    (re.compile(r"</?(ul|ol)(?:\s[^>]*)?>", re.IGNORECASE), _literal("\n\n")),
    (re.compile(r"<li(?:\s[^>]*)?>(.*?)</li\s*>", _FLAGS), _list_item),
    (re.compile(r"</?p(?:\s[^>]*)?>", re.IGNORECASE), _literal("\n\n")),
    (re.compile(r"<br\b[^>]*>", re.IGNORECASE), _literal("\n")),
    (re.compile(r"<img\b[^>]*>", re.IGNORECASE), _image),
]


def _render_markdown(html: str, options: MarkdownOptions) -> str:
    markdown = html
    if options.strip_scripts:
        for pattern in (_SCRIPT_RE, _STYLE_RE, _NOSCRIPT_RE):
            markdown = pattern.sub("", markdown)

    for pattern, handler in _MARKDOWN_RULES:
        markdown = pattern.sub(lambda m, h=handler: h(m, options), markdown)

    markdown = _decode_entities(_strip_tags(markdown))
    return _collapse_blank_lines(markdown)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_title(html: str) -> str:
    """Return the ``<title>`` text, else the first ``<h1>`` text, else ``""``."""
    match = _TITLE_RE.search(html)
    if match:
        title = _decode_entities(_strip_tags(match.group(1))).strip()
        if title:
            return title

    match = _H1_RE.search(html)
    if match:
        return _one_line(_decode_entities(_strip_tags(match.group(1))))

    return ""


def to_plain_text(html: str) -> str:
    """Drop scripts, styles and tags; decode common entities; tidy blank lines."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _decode_entities(_strip_tags(text))
    return _collapse_blank_lines(text)


def to_markdown(html: str, options: Optional[MarkdownOptions] = None) -> str:
    """Convert *html* to markdown.

    Falls back to :func:`to_plain_text` if any rewrite step fails, so callers
    never see an exception from here.
    """
    options = options or MarkdownOptions()
    try:
        return _render_markdown(html, options)
    except Exception:  # noqa: BLE001
        logger.warning("Markdown conversion failed; returning plain text", exc_info=True)
        return to_plain_text(html)


def extract_metadata(html: str) -> PageMetadata:
    """Collect meta tags, the canonical link and JSON-LD blocks from *html*.

    JSON-LD blocks that do not parse are skipped silently.
    """
    metadata = PageMetadata(title=extract_title(html) or None)

    for tag in _META_RE.findall(html):
        attrs = _parse_attrs(tag)
        content = attrs.get("content")
        if not content:
            continue

        name = attrs.get("name", "").strip()
        prop = attrs.get("property", "").strip()

        if name.lower() in _NAMED_META_FIELDS:
            setattr(metadata, name.lower(), content)

        for key in (prop, name):
            lowered = key.lower()
            if lowered.startswith("og:"):
                metadata.open_graph[key] = content
            elif lowered.startswith("twitter:"):
                metadata.twitter_card[key] = content

    for tag in _LINK_TAG_RE.findall(html):
        attrs = _parse_attrs(tag)
        rels = attrs.get("rel", "").lower().split()
        href = attrs.get("href", "").strip()
        if "canonical" in rels and href:
            metadata.canonical = href
            break

    for block in _JSON_LD_RE.findall(html):
        raw = block.strip()
        if not raw:
            continue
        try:
            metadata.structured_data.append(json.loads(raw))
        except (ValueError, RecursionError):
            logger.debug("Skipping malformed JSON-LD block (%d chars)", len(raw))

    return metadata
