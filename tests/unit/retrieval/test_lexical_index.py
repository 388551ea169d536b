"""
Tests for the lexical index and its scorers.
"""

import math

import pytest

from stylerank.ml.config import LexicalConfig, LexicalMethod
from stylerank.ml.retrieval.lexical_index import DocumentStats, LexicalIndex
from stylerank.models.product import Item


def make_items(*docs):
    return [Item(id=i, name=f"item {i}", search_doc=doc) for i, doc in enumerate(docs, start=1)]


@pytest.fixture
def corpus():
    return make_items(
        "adidas sports sneakers blue",
        "nike running sneakers white",
        "red cotton summer dress",
        "blue denim shirt dress",
    )


@pytest.fixture
def index(corpus):
    return LexicalIndex.build(corpus, LexicalConfig())


def test_build_statistics(index, corpus):
    assert len(index) == 4
    assert corpus[0].id in index
    assert index.document_frequency("sneakers") == 2
    assert index.document_frequency("missing") == 0
    assert index.avg_doc_length == 4.0


def test_document_stats_analyze():
    stats = DocumentStats.analyze("red red dress ok", min_word_length=3)

    assert stats.term_counts == {"red": 2, "dress": 1, "ok": 1}
    assert stats.length == 4
    assert stats.fuzzy_words == ("dress", "red")


def test_tfidf(index, corpus):
    doc = index.document(corpus[2])

    expected = (1 / 4) * math.log((4 + 1) / (1 + 1))
    assert index.tfidf(doc, ["summer"]) == pytest.approx(expected)
    assert index.tfidf(doc, ["sneakers"]) == 0.0
    assert index.tfidf(doc, []) == 0.0


def test_bm25_rewards_rare_terms(index, corpus):
    doc = index.document(corpus[3])

    assert index.bm25(doc, ["denim"]) > index.bm25(doc, ["dress"]) > 0
    assert index.bm25(doc, ["sneakers"]) == 0.0


def test_bm25_matches_okapi_formula(index, corpus):
    doc = index.document(corpus[3])

    # tf 1 in a document of average length: idf * (k1 + 1) / (1 + k1) == idf
    assert index.bm25(doc, ["denim"]) == pytest.approx(math.log(1 + 3.5 / 1.5))
    assert index.bm25(doc, ["denim", "denim"]) == pytest.approx(2 * math.log(1 + 3.5 / 1.5))


def test_bm25_length_normalization_uses_config():
    items = make_items("linen shirt", "linen shirt linen trousers summer wear")
    flat = LexicalIndex.build(items, LexicalConfig(bm25_b=0.0))
    normalized = LexicalIndex.build(items, LexicalConfig(bm25_b=0.75))

    short, long = (flat.document(item) for item in items)
    assert flat.bm25(short, ["linen"]) < flat.bm25(long, ["linen"])
    assert normalized.bm25(normalized.document(items[1]), ["linen"]) < flat.bm25(long, ["linen"])


def test_bm25_is_zero_for_unindexed_documents(index):
    outsider = Item(id=99, name="x", search_doc="blue denim")

    assert index.bm25(index.document(outsider), ["denim"]) == 0.0


def test_bm25_on_empty_corpus():
    index = LexicalIndex.build([], LexicalConfig())

    assert len(index) == 0
    assert index.bm25(DocumentStats.analyze("blue dress"), ["dress"]) == 0.0


def test_score_items_batches_bm25(index, corpus):
    tokens = ["blue", "dress"]
    batched = index.score_items(corpus, tokens, LexicalMethod.BM25)
    single = [index.bm25(index.document(item), tokens) for item in corpus]

    assert batched == pytest.approx(single)
    combined = index.score_items(corpus, tokens, LexicalMethod.COMBINED)
    assert combined == pytest.approx([index.score(index.document(item), tokens) for item in corpus])


def test_bm25_idf_stays_positive_for_common_terms():
    items = make_items("common alpha", "common beta", "common gamma")
    index = LexicalIndex.build(items, LexicalConfig())

    assert index.bm25(index.document(items[0]), ["common"]) > 0


def test_fuzzy_exact_substring(index, corpus):
    doc = index.document(corpus[0])

    assert index.fuzzy(doc, ["adidas"]) == 1.0


def test_fuzzy_prefix_match(index, corpus):
    doc = index.document(corpus[0])

    # ceil(0.75 * 8) = 6 character prefix "sneake" is present
    assert index.fuzzy(doc, ["sneakerz"]) == pytest.approx(0.9)


def test_fuzzy_edit_distance(index, corpus):
    doc = index.document(corpus[0])
    score = index.fuzzy(doc, ["adiddas"])

    assert score == pytest.approx(1 - 1 / 7, abs=1e-6)


def test_fuzzy_averages_tokens(index, corpus):
    doc = index.document(corpus[0])
    score = index.fuzzy(doc, ["adidas", "qqqqqq"])

    assert 0.5 <= score < 1.0


def test_combined_is_mean_of_methods(index, corpus):
    doc = index.document(corpus[1])
    tokens = ["nike", "sneakers"]

    expected = (index.tfidf(doc, tokens) + index.bm25(doc, tokens) + index.fuzzy(doc, tokens)) / 3
    assert index.score(doc, tokens, LexicalMethod.COMBINED) == pytest.approx(expected)
    assert index.score(doc, tokens, LexicalMethod.BM25) == pytest.approx(index.bm25(doc, tokens))


def test_score_items_preserves_order(index, corpus):
    scores = index.score_items(corpus, ["dress"], LexicalMethod.TFIDF)

    assert len(scores) == 4
    assert scores[0] == 0.0 and scores[1] == 0.0
    assert scores[2] > 0 and scores[3] > 0


def test_unindexed_item_is_analyzed_on_the_fly(index):
    outsider = Item(id=99, name="x", search_doc="blue sneakers")

    assert outsider.id not in index
    assert index.tfidf(index.document(outsider), ["sneakers"]) > 0
