"""
Tests for text normalization and search document construction.
"""

import pytest

from stylerank.ml.text.normalize import (
    build_search_doc,
    normalize_size,
    normalize_text,
    price_range_label,
    tokenize,
)


def test_normalize_text_maps_synonyms():
    assert normalize_text("Navy  Blazer in GREY Satin") == "blue blazer in gray silk"


def test_normalize_text_matches_whole_words_only():
    # "tan" must not be replaced inside "tank"
    assert normalize_text("Tank top") == "tank top"


def test_normalize_text_handles_empty_values():
    assert normalize_text(None) == ""
    assert normalize_text("") == ""


def test_normalize_text_is_idempotent():
    once = normalize_text("Crimson Velvet Party Dress")
    assert normalize_text(once) == once


def test_tokenize_keeps_brand_punctuation():
    assert tokenize("H&M men's T-Shirt!") == ["h&m", "men's", "t-shirt"]


def test_tokenize_strips_other_punctuation():
    assert tokenize("color: red, size (m)") == ["color", "red", "size", "m"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("one size", "one_size"),
        ("One-Size", "one_size"),
        ("10 UK", "10uk"),
        ("M", "m"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_size(raw, expected):
    assert normalize_size(raw) == expected


@pytest.mark.parametrize(
    "price, label",
    [
        (500, "budget"),
        (2999, "affordable"),
        (4000, "mid-range"),
        (7500, "premium"),
        (9000, "luxury"),
        (0, ""),
        (None, ""),
        ("abc", ""),
    ],
)
def test_price_range_label(price, label):
    assert price_range_label(price) == label


def test_build_search_doc_weights_fields():
    doc = build_search_doc(
        {"name": "Midi Dress", "category": "dress", "brand": "zara", "color": "navy", "size": "m"}
    )

    assert doc.count("midi dress") == 3
    assert doc.count("dress zara") == 3
    assert doc.count("color: blue") == 2
    assert doc.count("size m") == 1
    assert "navy" not in doc


def test_build_search_doc_skips_missing_fields():
    doc = build_search_doc({"name": "Scarf"})

    assert doc == "scarf scarf scarf"
