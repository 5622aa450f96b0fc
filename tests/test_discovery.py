from pricewatch_scraper.discovery import find_detail_links, find_next_page, looks_like_next
from tests.conftest import listing_html, make_response

LIST_URL = "https://geizhals.eu/?cat=hvent"


def test_narrow_selector_ignores_links_outside_listing_items():
    html = listing_html(["/a-a1.html", "b-a2.html", "/a-a1.html"], extra='<a href="/ad-a99.html">ad</a>')
    links = find_detail_links(make_response(LIST_URL, html))
    assert links == ["https://geizhals.eu/a-a1.html", "https://geizhals.eu/b-a2.html"]


def test_broad_fallback_when_listing_markup_changed():
    html = """
    <div class="new-grid">
      <a href="/x-a10.html">X</a>
      <a href="/?cat=hvent&amp;pg=2">2</a>
      <a href="/y-a11.html#offers">Y</a>
      <a href="javascript:void(0)">js</a>
    </div>
    """
    links = find_detail_links(make_response(LIST_URL, html))
    assert links == ["https://geizhals.eu/x-a10.html", "https://geizhals.eu/y-a11.html"]


def test_no_links_on_empty_page():
    assert find_detail_links(make_response(LIST_URL, "<html><body>Keine Treffer</body></html>")) == []


def test_next_page_from_pagination_text_wins():
    html = listing_html(["/a-a1.html"], next_href="/?cat=hvent&pg=5")
    assert find_next_page(make_response(LIST_URL, html), 1) == "https://geizhals.eu/?cat=hvent&pg=5"


def test_next_page_by_title_attribute():
    html = '<div class="pagination"><a href="/?cat=hvent&amp;pg=2" title="Next page"><i class="icon"></i></a></div>'
    assert find_next_page(make_response(LIST_URL, html), 1) == "https://geizhals.eu/?cat=hvent&pg=2"


def test_next_page_synthesized_from_url():
    html = listing_html(["/a-a1.html"])
    assert find_next_page(make_response(LIST_URL, html), 1) == "https://geizhals.eu/?cat=hvent&pg=2"
    assert (
        find_next_page(make_response("https://geizhals.eu/?cat=hvent&pg=4", html), 2)
        == "https://geizhals.eu/?cat=hvent&pg=5"
    )


def test_looks_like_next():
    assert looks_like_next("nächste Seite")
    assert looks_like_next("»")
    assert looks_like_next("Weiter ›")
    assert looks_like_next(None, "Next")
    assert not looks_like_next("« zurück")
    assert not looks_like_next("3")


def test_looks_like_next_matches_whole_words_only():
    assert not looks_like_next("weitere Filter")
    assert not looks_like_next("»»")
    assert not looks_like_next("»", "letzte Seite")
    assert not looks_like_next("Last »")


def test_last_page_link_is_not_followed():
    html = listing_html(
        ["/a-a1.html"],
        extra='<div class="gpagenav"><a href="/?cat=hvent&amp;pg=9" title="letzte Seite">»</a></div>',
    )
    assert find_next_page(make_response(LIST_URL, html), 1) == "https://geizhals.eu/?cat=hvent&pg=2"


def test_rel_next_used_when_page_param_gives_nothing(monkeypatch):
    monkeypatch.setattr("pricewatch_scraper.discovery.next_from_page_param", lambda url, page: None)
    html = '<html><head><link rel="next" href="/?cat=hvent&amp;page=2"></head><body></body></html>'
    assert find_next_page(make_response(LIST_URL, html), 1) == "https://geizhals.eu/?cat=hvent&page=2"
    assert find_next_page(make_response(LIST_URL, "<html><body></body></html>"), 1) is None
