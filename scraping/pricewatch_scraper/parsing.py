"""
Text and number normalization shared by both extraction passes.

Responsibilities:
- Collapse whitespace and turn empty strings into None
- Convert EU price notation to float (never raising)
- Coerce loosely typed JSON-LD numbers
- Fold priority-ordered strategies into a single value ("first present wins")
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Optional


def clean(text):
    # Normalize whitespace and convert empty strings to None.
    if text is None:
        return None
    s = re.sub(r"\s+", " ", str(text)).strip()
    return s or None


def price_to_float(text) -> Optional[float]:
    """
    EU price text -> float.

    Only the first number in the text is read, so ranges and shipping
    notes after the price are ignored. The last separator is the decimal
    point when both comma and dot occur; a lone comma is decimal, repeated
    separators are grouping:
      - "1.234,56 €"          -> 1234.56
      - "€ 49,99"             -> 49.99
      - "ab € 5,-"            -> 5.0
      - "ab € 1.299,-"        -> 1299.0
      - "€ 189,90 - € 250,00" -> 189.9
      - "€ 1,234.56"          -> 1234.56
      - "1.299.000"           -> 1299000.0
      - "12.50"               -> 12.5
    Returns None when no number can be read.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)

    # "1 234,56" with (thin) spaces as grouping
    s = re.sub(r"(?<![\d.,])(\d{1,3})\s(?=\d{3}(?!\d))", r"\1", str(text))
    m = re.search(r"\d[\d.,]*", s)
    if not m:
        return None
    token = m.group(0)
    # "1.299,-": a dangling comma closes a whole amount
    whole_amount = token.endswith(",")
    t = token.rstrip(".,")

    last_comma, last_dot = t.rfind(","), t.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            t = t.replace(".", "").replace(",", ".")
        else:
            t = t.replace(",", "")
    elif last_comma >= 0:
        t = t.replace(",", "") if t.count(",") > 1 else t.replace(",", ".")
    elif last_dot >= 0 and (whole_amount or t.count(".") > 1):
        t = t.replace(".", "")

    try:
        return float(t)
    except ValueError:
        return None


def to_float(value) -> Optional[float]:
    # JSON-LD numbers arrive as numbers or strings ("49.99", "49,99").
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = clean(value)
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return price_to_float(s)


def to_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    # first number in the text; dots, commas and spaces before 3 digits are grouping
    m = re.search(r"\d+(?:[.,\s]\d{3}(?!\d))*", str(value))
    if not m:
        return None
    return int(re.sub(r"\D", "", m.group(0)))


def rating_to_float(text) -> Optional[float]:
    # "4,5 von 5 Sternen" -> 4.5
    s = clean(text)
    if not s:
        return None
    m = re.search(r"\d+(?:[.,]\d+)?", s)
    if not m:
        return None
    return float(m.group(0).replace(",", "."))


def first_present(*candidates: Any) -> Any:
    """Return the first candidate that is neither None nor empty."""
    for c in candidates:
        if c is None:
            continue
        if isinstance(c, (str, list, dict)) and not c:
            continue
        return c
    return None


def first_of(strategies: Iterable[Callable[[], Any]]) -> Any:
    """
    Run strategies in priority order and return the first present result.
    Strategies are zero-argument callables so later ones never run once an
    earlier one succeeded.
    """
    for strategy in strategies:
        value = strategy()
        if first_present(value) is not None:
            return value
    return None


def node_text(node) -> Optional[str]:
    # All descendant text of one selector node, whitespace-collapsed.
    if node is None:
        return None
    return clean(" ".join(node.xpath(".//text()").getall()))


def first_text(response, selectors: list[str], min_len: int = 1) -> Optional[str]:
    """
    First selector whose joined text is at least `min_len` characters.

    Selectors ending in ::attr(...) are read as a single attribute value;
    everything else joins all text nodes of the first matching element.
    """
    for sel in selectors:
        if "::attr(" in sel:
            v = clean(response.css(sel).get())
        else:
            node = response.css(sel)
            if not node:
                continue
            v = node_text(node[0])
        if v and len(v) >= min_len:
            return v
    return None
