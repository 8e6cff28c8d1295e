from pagefetch.extract import parse_annas_search, parse_generic

GENERIC_HTML = """
<html><head>
  <title>  Example Domain </title>
  <meta property="og:description" content="An example page">
</head><body>
  <img src="/logo.png"><img alt="no src">
  <a href="/about">About</a><a>no href</a><a href="https://other.org/">Other</a>
</body></html>
"""

SEARCH_HTML = """
<html><head><link rel="canonical" href="https://annas-archive.se/search?q=dune"></head>
<body>
  <div class="result"><a href="/md5/aaa" class="js-vim-focus">Dune</a> by Frank Herbert</div>
  <div class="result"><a href="https://annas-archive.se/md5/aaa">Dune (dup)</a></div>
  <div><a href="/md5/bbb">Dune Messiah</a></div>
  <nav><a href="/faq">FAQ</a><a href="//cdn.example.org/x">CDN</a></nav>
</body></html>
"""


def test_parse_generic_fields():
    summary = parse_generic(GENERIC_HTML)
    assert summary.title == "Example Domain"
    assert summary.description == "An example page"
    assert summary.images == ["/logo.png"]
    assert summary.links == ["/about", "https://other.org/"]
    assert summary.raw_html_length == len(GENERIC_HTML)


def test_parse_generic_prefers_meta_description():
    html = '<html><head><meta name="description" content="plain"><meta property="og:description" content="og"></head></html>'
    assert parse_generic(html).description == "plain"


def test_search_anchors_are_resolved_and_deduplicated():
    result = parse_annas_search(SEARCH_HTML)
    resolved = [r.resolved_href for r in result["raw_results"]]
    assert resolved == [
        "https://annas-archive.se/md5/aaa",
        "https://annas-archive.se/md5/bbb",
        "https://annas-archive.se/faq",
        "https://cdn.example.org/x",
    ]
    first = result["raw_results"][0]
    assert first.text == "Dune"
    assert first.attributes == {"href": "/md5/aaa", "class": "js-vim-focus"}
    assert first.parent_text == "Dune by Frank Herbert"
    assert first.outer_html.startswith("<a ")


def test_md5_subset():
    result = parse_annas_search(SEARCH_HTML)
    assert [r.href for r in result["md5_results"]] == ["/md5/aaa", "/md5/bbb"]


def test_base_hint_and_default_base():
    html = '<a href="/md5/ccc">x</a>'
    assert parse_annas_search(html, "https://annas-archive.org/search")["raw_results"][0].resolved_href == (
        "https://annas-archive.org/md5/ccc"
    )
    assert parse_annas_search(html)["raw_results"][0].resolved_href == "https://annas-archive.li/md5/ccc"
