import pytest

from pricewatch_scraper.parsing import (
    clean,
    first_of,
    first_present,
    first_text,
    price_to_float,
    rating_to_float,
    to_float,
    to_int,
)
from tests.conftest import make_response


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1.234,56 €", 1234.56),
        ("€ 49,99", 49.99),
        ("ab € 5,-", 5.0),
        ("EUR 1.299.000", 1299000.0),
        ("12.50", 12.5),
        ("€\xa0799,00", 799.0),
        (" 3 ", 3.0),
        ("€ 189,90 - € 250,00", 189.9),
        ("ab € 1.299,-", 1299.0),
        ("€ 189,90 zzgl. € 4,99 Versand", 189.9),
        ("€ 1,234.56", 1234.56),
        ("1 234,56 €", 1234.56),
    ],
)
def test_price_to_float_reads_eu_notation(text, expected):
    assert price_to_float(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", [None, "", "kein Preis", "€", ".,."])
def test_price_to_float_without_digits_is_none(text):
    assert price_to_float(text) is None


def test_price_to_float_passes_numbers_through():
    assert price_to_float(19) == 19.0
    assert price_to_float(19.5) == 19.5


def test_to_float_and_to_int_coerce_or_return_none():
    assert to_float("49.99") == 49.99
    assert to_float("49,99") == 49.99
    assert to_float("n/a") is None
    assert to_float(True) is None
    assert to_int("1.234 Bewertungen") == 1234
    assert to_int("12 reviews") == 12
    assert to_int("1,024 reviews") == 1024
    assert to_int("4,5 (12)") == 4
    assert to_int(7.9) == 7
    assert to_int("none") is None


def test_rating_to_float():
    assert rating_to_float("4,5 von 5 Sternen") == 4.5
    assert rating_to_float("no rating") is None


def test_clean_collapses_whitespace():
    assert clean("  a \n b\t") == "a b"
    assert clean("   ") is None
    assert clean(None) is None


def test_first_present_skips_empty_values():
    assert first_present(None, "", [], "x", "y") == "x"
    assert first_present(0, 5) == 0
    assert first_present(None, {}) is None


def test_first_of_stops_at_first_success():
    calls = []

    def strategy(value):
        def run():
            calls.append(value)
            return value
        return run

    assert first_of([strategy(None), strategy("b"), strategy("c")]) == "b"
    assert calls == [None, "b"]


def test_first_text_respects_order_and_min_length():
    response = make_response(
        "https://geizhals.eu/x",
        '<h1 class="a">ab</h1><h2 class="b">Long <span>enough</span></h2><meta property="og:title" content="Meta">',
    )
    assert first_text(response, ["h1.a", "h2.b"], min_len=3) == "Long enough"
    assert first_text(response, ['meta[property="og:title"]::attr(content)']) == "Meta"
    assert first_text(response, [".missing"]) is None
