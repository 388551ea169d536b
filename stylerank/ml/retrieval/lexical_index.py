"""
Lexical Index
Per-corpus term statistics and TF-IDF, BM25 and fuzzy token scorers.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from rank_bm25 import BM25Okapi
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from ...models.product import Item
from ..config import LexicalConfig, LexicalMethod, get_ml_config
from ..text.normalize import tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentStats:
    """Term statistics for a single search document."""

    text: str
    term_counts: Dict[str, int]
    length: int
    fuzzy_words: Tuple[str, ...]  # Unique words long enough for edit-distance matching
    position: Optional[int] = None  # Row in the BM25 corpus; None when not indexed

    @classmethod
    def analyze(cls, search_doc: str, min_word_length: int = 3) -> "DocumentStats":
        tokens = tokenize(search_doc)
        counts = Counter(tokens)
        words = tuple(sorted(w for w in counts if len(w) >= min_word_length))
        return cls(
            text=" ".join(tokens),
            term_counts=dict(counts),
            length=len(tokens),
            fuzzy_words=words,
        )


class OkapiBM25(BM25Okapi):
    """
    BM25Okapi with the non-negative idf ln(1 + (N - df + 0.5) / (df + 0.5)).

    The stock idf goes negative for terms in more than half the corpus and is
    then floored to epsilon * average idf; this variant keeps every matching
    term's contribution positive and independent of the rest of the vocabulary.
    """

    def _calc_idf(self, nd):
        for word, freq in nd.items():
            self.idf[word] = math.log(1 + (self.corpus_size - freq + 0.5) / (freq + 0.5))
        self.average_idf = sum(self.idf.values()) / len(self.idf) if self.idf else 0.0


class LexicalIndex:
    """
    Immutable lexical statistics for one catalog snapshot.

    Holds document frequency per term, per-document term counts and lengths,
    and the average document length. Scoring methods are pure functions of
    (document statistics, query tokens); the index is never mutated after
    build(). A new catalog gets a new index.
    """

    def __init__(
        self,
        documents: Dict[Union[int, str], DocumentStats],
        document_frequency: Dict[str, int],
        config: Optional[LexicalConfig] = None,
    ):
        self._documents = {
            item_id: replace(stats, position=position)
            for position, (item_id, stats) in enumerate(documents.items())
        }
        self._df = document_frequency
        self.config = config or get_ml_config().lexical

        self.num_documents = len(documents)
        total_length = sum(doc.length for doc in documents.values())
        self.avg_doc_length = total_length / self.num_documents if self.num_documents else 0.0

        # rank_bm25 divides by the average length, so an all-empty corpus gets no model
        self._bm25: Optional[OkapiBM25] = None
        if total_length:
            self._bm25 = OkapiBM25(
                [stats.text.split() for stats in self._documents.values()],
                k1=self.config.bm25_k1,
                b=self.config.bm25_b,
            )

    @classmethod
    def build(cls, items: Iterable[Item], config: Optional[LexicalConfig] = None) -> "LexicalIndex":
        """
        Build an index over item search documents.

        Args:
            items: Catalog items
            config: Lexical configuration (default: global config)

        Returns:
            LexicalIndex
        """
        config = config or get_ml_config().lexical

        documents: Dict[Union[int, str], DocumentStats] = {}
        df: Counter = Counter()

        for item in items:
            stats = DocumentStats.analyze(item.search_doc, config.fuzzy_min_word_length)
            documents[item.id] = stats
            df.update(stats.term_counts.keys())

        index = cls(documents, dict(df), config)
        logger.info(
            f"Built lexical index: {index.num_documents} documents, "
            f"{index.vocabulary_size} terms, avg length {index.avg_doc_length:.1f}"
        )
        return index

    @property
    def vocabulary_size(self) -> int:
        return len(self._df)

    def __len__(self) -> int:
        return self.num_documents

    def __contains__(self, item_id) -> bool:
        return item_id in self._documents

    def document_frequency(self, term: str) -> int:
        return self._df.get(term, 0)

    def document(self, item: Item) -> DocumentStats:
        """Statistics for an item, analyzing its document if it is not indexed."""
        stats = self._documents.get(item.id)
        if stats is None:
            stats = DocumentStats.analyze(item.search_doc, self.config.fuzzy_min_word_length)
        return stats

    # === SCORERS ===

    def tfidf(self, doc: DocumentStats, tokens: Sequence[str]) -> float:
        """Sum of (tf / doc length) * ln((N + 1) / (df + 1)) over query tokens."""
        if not tokens or doc.length == 0:
            return 0.0

        n = self.num_documents
        score = 0.0
        for token in tokens:
            tf = doc.term_counts.get(token, 0)
            if tf == 0:
                continue
            idf = math.log((n + 1) / (self.document_frequency(token) + 1))
            score += (tf / doc.length) * idf
        return score

    def bm25(self, doc: DocumentStats, tokens: Sequence[str]) -> float:
        """
        Okapi BM25 (rank_bm25) with k1/b from config.

        Only indexed documents have corpus statistics; a document analyzed on
        the fly scores 0.
        """
        return self._bm25_scores([doc], tokens)[0]

    def _bm25_scores(self, docs: Sequence[DocumentStats], tokens: Sequence[str]) -> List[float]:
        scores = [0.0] * len(docs)
        if self._bm25 is None or not tokens:
            return scores

        rows = [i for i, doc in enumerate(docs) if doc.position is not None and doc.length]
        if rows:
            batch = self._bm25.get_batch_scores(list(tokens), [docs[i].position for i in rows])
            for i, value in zip(rows, batch):
                scores[i] = float(value)
        return scores

    def fuzzy(self, doc: DocumentStats, tokens: Sequence[str]) -> float:
        """
        Average per-token fuzzy match.

        Each token scores 1.0 when it is a literal substring of the document,
        the prefix score when a long-enough prefix appears, and otherwise its
        best normalized Levenshtein similarity against the document words.
        """
        if not tokens:
            return 0.0
        return sum(self._fuzzy_token(doc, token) for token in tokens) / len(tokens)

    def _fuzzy_token(self, doc: DocumentStats, token: str) -> float:
        if token in doc.text:
            return 1.0

        cfg = self.config
        if len(token) >= cfg.fuzzy_min_prefix:
            prefix_len = max(cfg.fuzzy_min_prefix, math.ceil(cfg.fuzzy_prefix_ratio * len(token)))
            if prefix_len < len(token) and token[:prefix_len] in doc.text:
                return cfg.fuzzy_prefix_score

        if not doc.fuzzy_words:
            return 0.0

        match = process.extractOne(
            token, doc.fuzzy_words, scorer=Levenshtein.normalized_similarity
        )
        return float(match[1]) if match else 0.0

    def score(
        self,
        doc: DocumentStats,
        tokens: Sequence[str],
        method: LexicalMethod = LexicalMethod.COMBINED,
    ) -> float:
        """
        Lexical relevance of a document for query tokens.

        Args:
            doc: Document statistics
            tokens: Normalized query tokens
            method: Scoring method (combined = mean of TF-IDF, BM25 and fuzzy)

        Returns:
            Non-negative lexical score
        """
        if method == LexicalMethod.TFIDF:
            return self.tfidf(doc, tokens)
        if method == LexicalMethod.BM25:
            return self.bm25(doc, tokens)
        if method == LexicalMethod.FUZZY:
            return self.fuzzy(doc, tokens)
        return (self.tfidf(doc, tokens) + self.bm25(doc, tokens) + self.fuzzy(doc, tokens)) / 3

    def score_items(
        self,
        items: Sequence[Item],
        tokens: Sequence[str],
        method: LexicalMethod = LexicalMethod.COMBINED,
    ) -> List[float]:
        """Lexical scores for items, in input order."""
        docs = [self.document(item) for item in items]
        if method == LexicalMethod.TFIDF:
            return [self.tfidf(doc, tokens) for doc in docs]
        if method == LexicalMethod.FUZZY:
            return [self.fuzzy(doc, tokens) for doc in docs]

        bm25 = self._bm25_scores(docs, tokens)
        if method == LexicalMethod.BM25:
            return bm25
        return [
            (self.tfidf(doc, tokens) + bm25_score + self.fuzzy(doc, tokens)) / 3
            for doc, bm25_score in zip(docs, bm25)
        ]
