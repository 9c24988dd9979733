"""
Query normalization.
- Unicode NFC composition and case folding
- Alphanumeric tokenization via nltk RegexpTokenizer
- Stopword and single-character filtering
- Porter stemming; originals and stems are both kept for matching
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import List, Optional

from nltk.stem import PorterStemmer
from nltk.tokenize import RegexpTokenizer

logger = logging.getLogger("normalizer")

STOPWORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in", "with",
        "to", "for", "of", "as", "by", "from", "that", "this", "it", "are", "was", "were",
        "be", "been", "being", "have", "has", "had", "do", "does", "did", "will", "would",
        "should", "could", "can", "may", "might", "must", "shall",
    }
)


@dataclass(frozen=True)
class QueryToken:
    """A normalized query term and its stem (None when the stem equals the token)."""
    token: str
    stem: Optional[str] = None


class TokenNormalizer:
    """Turns a raw query string into the token set sent to the index."""

    MIN_TOKEN_LENGTH = 2

    def __init__(self) -> None:
        self._tokenizer = RegexpTokenizer(r"[^\W_]+")
        self._stemmer = PorterStemmer()

    def tokenize(self, text: str) -> List[str]:
        """NFC-normalize, lowercase and split text into alphanumeric runs."""
        if not text:
            return []
        normalized = unicodedata.normalize("NFC", text).lower()
        return self._tokenizer.tokenize(normalized)

    def analyze(self, query: str) -> List[QueryToken]:
        """Tokenize, filter and stem a query, one QueryToken per surviving term."""
        analyzed: List[QueryToken] = []
        seen = set()
        for token in self.tokenize(query):
            if len(token) < self.MIN_TOKEN_LENGTH or token in STOPWORDS:
                continue
            if token in seen:
                continue
            seen.add(token)
            stem = self._stemmer.stem(token)
            analyzed.append(QueryToken(token=token, stem=stem if stem != token else None))
        return analyzed

    def normalize(self, query: str) -> List[str]:
        """
        Return the deduplicated union of tokens and their stems.
        Order is first-seen (tokens before stems) so downstream predicates are stable.
        """
        analyzed = self.analyze(query)
        terms = [t.token for t in analyzed]
        terms.extend(t.stem for t in analyzed if t.stem)
        result = list(dict.fromkeys(terms))
        logger.debug("Normalized '%s' -> %s", query, result)
        return result
