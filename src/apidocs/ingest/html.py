"""HTML → Markdown content extraction for documentation pages.

Two steps, both total (they never raise):

- ``extract_main_content()`` picks the documentation container out of a full
  page using an ordered CSS selector list (first match wins), falling back to
  the ``<body>`` contents and finally to the whole document.
- ``html_to_markdown()`` strips boilerplate and converts the fragment with
  html2text. Code is lifted out *before* conversion and re-inserted as fenced
  blocks / backtick spans, because html2text does not emit language-tagged
  fences.
"""

from __future__ import annotations

import logging
import re

import html2text
from bs4 import BeautifulSoup, Comment, NavigableString
from bs4.element import Tag

logger = logging.getLogger(__name__)

# Priority order, first match wins.
_CONTENT_SELECTORS: tuple[str, ...] = (
    "main article",
    "main .content",
    '[role="main"]',
    ".documentation",
    ".docs-content",
    ".markdown-body",
    ".prose",
    "article.content",
    "article",
    "main",
    "#content",
    ".content",
)

_DROP_TAGS = ["nav", "header", "footer", "aside", "script", "style", "noscript"]
# Whole class names only, so content classes such as ``code-overlay`` survive.
_BANNER_CLASS_RE = re.compile(
    r"^(?:"
    r"[\w-]*cookie[\w-]*"
    r"|(?:announcement|consent|promo|newsletter)[-_](?:banner|bar|popup|modal)"
    r"|(?:banner|popup|modal|overlay)(?:[-_](?:backdrop|container|wrapper|open))?"
    r")$",
    re.IGNORECASE,
)
_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-([\w+#.-]+)$")

_BLOCK_TOKEN = "APIDOCSBLOCK{}X"
_INLINE_TOKEN = "APIDOCSINLINE{}X"

_DOC_INDICATORS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<pre[^>]*>",
        r"<code[^>]*>",
        r"```",
        r'class="[^"]*(?:highlight|syntax|code)[^"]*"',
        r"api",
        r"endpoint",
        r"parameter",
        r"request",
        r"response",
        r"example",
        r"usage",
        r"installation",
        r"getting.?started",
        r"quickstart",
        r"tutorial",
        r"guide",
        r"reference",
        r"documentation",
    )
)


def extract_main_content(html: str) -> str:
    """Return the HTML fragment holding the page's main documentation content."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in _CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            return str(node)
    if soup.body is not None:
        return soup.body.decode_contents()
    return html


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to Markdown with fenced, language-tagged code."""
    try:
        markdown = _convert(html)
    except Exception as exc:  # noqa: BLE001
        logger.warning("html2text conversion failed, using plain text: %s", exc)
        markdown = BeautifulSoup(html, "html.parser").get_text("\n")
    return _tidy(markdown)


def page_title(html: str) -> str:
    """Return the ``<title>`` text of *html*, or an empty string."""
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None or soup.title.string is None:
        return ""
    return soup.title.string.strip()


def looks_like_documentation(html: str) -> bool:
    """True when *html* shows at least two documentation indicators."""
    return sum(1 for p in _DOC_INDICATORS if p.search(html)) >= 2


# ------------------------------------------------------------------
# Conversion pipeline
# ------------------------------------------------------------------


def _convert(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    _strip_boilerplate(soup)

    blocks: dict[str, str] = {}
    for i, pre in enumerate(soup.find_all("pre")):
        code = pre.find("code")
        source = code if isinstance(code, Tag) else pre
        token = _BLOCK_TOKEN.format(i)
        blocks[token] = _fence(source.get_text(), _code_language(source, pre))
        holder = soup.new_tag("p")
        holder.string = token
        pre.replace_with(holder)

    spans: dict[str, str] = {}
    for i, code in enumerate(soup.find_all("code")):
        token = _INLINE_TOKEN.format(i)
        spans[token] = _inline_code(code.get_text())
        code.replace_with(NavigableString(token))

    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_links = True
    converter.ignore_images = True
    converter.unicode_snob = True
    converter.ul_item_mark = "-"
    converter.emphasis_mark = "*"
    markdown = converter.handle(str(soup))

    for token, fenced in blocks.items():
        markdown = markdown.replace(token, fenced)
    for token, span in spans.items():
        markdown = markdown.replace(token, span)
    return markdown


def _strip_boilerplate(soup: BeautifulSoup) -> None:
    """Remove comments, chrome, banners and aria-hidden subtrees in place."""
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(_DROP_TAGS):
        tag.extract()
    for tag in soup.find_all(class_=_BANNER_CLASS_RE):
        tag.extract()
    for tag in soup.find_all(attrs={"aria-hidden": "true"}):
        tag.extract()


def _code_language(*nodes: Tag) -> str:
    for node in nodes:
        for cls in node.get("class") or []:
            match = _LANGUAGE_CLASS_RE.match(cls)
            if match:
                return match.group(1)
    return ""


def _fence(code: str, language: str) -> str:
    code = code.strip("\n")
    longest = max((len(run) for run in re.findall(r"`+", code)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"\n{fence}{language}\n{code}\n{fence}\n"


def _inline_code(text: str) -> str:
    if "`" not in text:
        return f"`{text}`"
    if text.startswith("`") or text.endswith("`"):
        return f"`` {text} ``"
    return f"``{text}``"


def _tidy(markdown: str) -> str:
    markdown = re.sub(r"[ \t]+$", "", markdown, flags=re.MULTILINE)
    markdown = re.sub(r"\n{4,}", "\n\n\n", markdown)
    return markdown.strip() + "\n"
