"""Tests for HTML → Markdown content extraction."""

from __future__ import annotations

from apidocs.ingest.html import (
    extract_main_content,
    html_to_markdown,
    looks_like_documentation,
    page_title,
)

_EXAMPLE = (
    '<body><nav>skip</nav><article><h2>Auth</h2><p>Use a key.</p>'
    '<pre><code class="language-bash">curl -H "X-Key: k"</code></pre></article></body>'
)


def _markdown(html: str) -> str:
    return html_to_markdown(extract_main_content(html))


# ------------------------------------------------------------------
# extract_main_content()
# ------------------------------------------------------------------


def test_example_round_trip():
    md = _markdown(_EXAMPLE)

    assert "## Auth" in md
    assert "Use a key." in md
    assert '```bash\ncurl -H "X-Key: k"\n```' in md
    assert "skip" not in md


def test_selector_priority_first_match_wins():
    html = (
        "<body><div class='content'>generic</div>"
        "<main><article><p>primary</p></article></main></body>"
    )
    fragment = extract_main_content(html)
    assert "primary" in fragment
    assert "generic" not in fragment


def test_role_main_beats_bare_article():
    html = "<body><article>teaser</article><div role='main'>body text</div></body>"
    fragment = extract_main_content(html)
    assert "body text" in fragment
    assert "teaser" not in fragment


def test_falls_back_to_body_contents():
    fragment = extract_main_content("<html><body><div><p>plain page</p></div></body></html>")
    assert "plain page" in fragment
    assert "<body" not in fragment


def test_falls_back_to_whole_document_without_body():
    assert extract_main_content("just text") == "just text"


# ------------------------------------------------------------------
# html_to_markdown()
# ------------------------------------------------------------------


def test_boilerplate_removed_before_conversion():
    html = (
        "<div><!-- hidden comment --><header>Site header</header>"
        "<div class='cookie-banner'>Accept cookies</div>"
        "<div aria-hidden='true'>decorative</div>"
        "<script>var x = 1;</script><style>p {}</style>"
        "<p>Real content.</p><footer>Footer links</footer><aside>Ad</aside></div>"
    )
    md = html_to_markdown(html)

    assert "Real content." in md
    for noise in ("hidden comment", "Site header", "Accept cookies", "decorative", "var x", "Footer", "Ad"):
        assert noise not in md


def test_banner_classes_match_whole_class_names():
    html = (
        "<div><div class='modal'>Subscribe now</div>"
        "<div class='announcement-banner'>Big sale</div>"
        "<div class='code-overlay'>Overlay sample</div>"
        "<div class='modal-api-reference'>Modal API reference</div>"
        "<p>Real content.</p></div>"
    )
    md = html_to_markdown(html)

    assert "Overlay sample" in md
    assert "Modal API reference" in md
    assert "Subscribe now" not in md
    assert "Big sale" not in md


def test_inline_code_uses_backticks():
    md = html_to_markdown("<p>Call <code>client.get()</code> first.</p>")
    assert "`client.get()`" in md


def test_inline_code_with_backtick_is_double_fenced():
    md = html_to_markdown("<p>Use <code>a`b</code> here.</p>")
    assert "``a`b``" in md


def test_code_block_without_language():
    md = html_to_markdown("<pre>plain block</pre>")
    assert "```\nplain block\n```" in md


def test_code_block_language_from_pre_class():
    md = html_to_markdown('<pre class="lang-python"><code>print(1)</code></pre>')
    assert "```python\nprint(1)\n```" in md


def test_code_block_containing_fence_gets_longer_fence():
    md = html_to_markdown("<pre><code>```\nnested\n```</code></pre>")
    assert "````" in md


def test_blank_lines_collapsed_and_single_trailing_newline():
    md = html_to_markdown("<p>one</p>" + "<br>" * 12 + "<p>two   </p>")

    assert "\n\n\n\n" not in md
    assert md.endswith("two\n")
    assert not md.endswith("\n\n")
    assert all(line == line.rstrip() for line in md.splitlines())


def test_empty_input_yields_single_newline():
    assert html_to_markdown("") == "\n"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def test_page_title():
    assert page_title("<html><head><title> Quickstart </title></head></html>") == "Quickstart"
    assert page_title("<p>no title</p>") == ""


def test_looks_like_documentation_needs_two_indicators():
    assert looks_like_documentation("<pre><code>x</code></pre>")
    assert not looks_like_documentation("<p>Buy now</p>")
