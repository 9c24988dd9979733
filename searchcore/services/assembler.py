"""
Result assembly.
- Splits concatenated media, drops blanks and duplicate URLs
- Orders media by format class (jpg > jpeg > png > webp > other), query-matching URLs first
- Caps media per page (text search) or flattens and caps (image search)
- Derives a description from page content when the page has none
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from nltk.tokenize.punkt import PunktSentenceTokenizer

from searchcore.services.planner import MEDIA_DELIMITER, MEDIA_FORMATS, OTHER_FORMAT

logger = logging.getLogger("assembler")

_sentence_splitter = PunktSentenceTokenizer()

MIN_SENTENCE_LENGTH = 20
MAX_SENTENCE_LENGTH = 200


def media_format(url: str) -> str:
    lowered = url.lower()
    for fmt in MEDIA_FORMATS:
        if f".{fmt}" in lowered:
            return fmt
    return OTHER_FORMAT


def format_priority(fmt: str) -> int:
    if fmt in MEDIA_FORMATS:
        return MEDIA_FORMATS.index(fmt) + 1
    return len(MEDIA_FORMATS) + 1


def extract_description(content: Optional[str]) -> str:
    """First content sentence of 20-200 characters, or '' when none qualifies."""
    if not content:
        return ""
    for sentence in _sentence_splitter.tokenize(content):
        sentence = sentence.strip()
        if MIN_SENTENCE_LENGTH <= len(sentence) <= MAX_SENTENCE_LENGTH:
            return sentence
    return ""


@dataclass
class MediaRef:
    url: str
    format: str
    relevant: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "format": self.format, "relevant": self.relevant}


@dataclass
class RankedResult:
    """One page in a text search response."""
    id: int
    title: Optional[str]
    url: str
    description: str
    content: Optional[str]
    favicon: Optional[str]
    images: List[MediaRef] = field(default_factory=list)
    title_priority: int = 5
    title_length: int = 0
    rank: float = 0.0
    personalization_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "content": self.content,
            "favicon": self.favicon,
            "images": [m.to_dict() for m in self.images],
            "title_priority": self.title_priority,
            "title_length": self.title_length,
            "rank": self.rank,
            "personalization_score": self.personalization_score,
        }


@dataclass
class MediaResult:
    """One image in an image search response."""
    image_url: str
    format: str
    relevant: bool
    title: Optional[str]
    url: str
    title_priority: int
    image_format_priority: int
    title_length: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_url": self.image_url,
            "format": self.format,
            "relevant": self.relevant,
            "title": self.title,
            "url": self.url,
            "title_priority": self.title_priority,
            "image_format_priority": self.image_format_priority,
            "title_length": self.title_length,
        }


class ResultAssembler:
    """Shapes index rows into response objects."""

    MEDIA_PER_PAGE = 4
    IMAGE_RESULT_LIMIT = 100

    # ---------------------- Media Ordering ----------------------
    @staticmethod
    def split_media(concatenated: Optional[str]) -> List[str]:
        """Split GROUP_CONCAT output, dropping blank entries and duplicate URLs."""
        if not concatenated:
            return []
        urls = [u.strip() for u in concatenated.split(MEDIA_DELIMITER)]
        return list(dict.fromkeys(u for u in urls if u))

    @staticmethod
    def order_media(urls: Iterable[str], tokens: Sequence[str]) -> List[MediaRef]:
        """Group by format class; within a class, URLs containing a query token come first."""
        buckets: Dict[str, List[MediaRef]] = {fmt: [] for fmt in (*MEDIA_FORMATS, OTHER_FORMAT)}
        lowered_tokens = [t.lower() for t in tokens if t]
        for url in urls:
            lowered = url.lower()
            relevant = any(t in lowered for t in lowered_tokens)
            fmt = media_format(url)
            buckets[fmt].append(MediaRef(url=url, format=fmt, relevant=relevant))

        ordered: List[MediaRef] = []
        for refs in buckets.values():
            ordered.extend(r for r in refs if r.relevant)
            ordered.extend(r for r in refs if not r.relevant)
        return ordered

    # ---------------------- Text Search ----------------------
    def assemble_pages(self, rows: Iterable[Dict[str, Any]], tokens: Sequence[str]) -> List[RankedResult]:
        results = []
        for row in rows:
            media = self.order_media(self.split_media(row.get("images")), tokens)
            description = row.get("description") or extract_description(row.get("content"))
            results.append(
                RankedResult(
                    id=row["id"],
                    title=row.get("title"),
                    url=row["url"],
                    description=description,
                    content=row.get("content"),
                    favicon=row.get("favicon"),
                    images=media[: self.MEDIA_PER_PAGE],
                    title_priority=int(row.get("title_priority") or 5),
                    title_length=int(row.get("title_length") or 0),
                    rank=float(row.get("fts_rank") or 0.0),
                )
            )
        return results

    # ---------------------- Image Search ----------------------
    def assemble_images(self, rows: Iterable[Dict[str, Any]], tokens: Sequence[str]) -> List[MediaResult]:
        """
        Flatten image rows into a deduplicated list capped at IMAGE_RESULT_LIMIT.
        Row order from the index (title priority, then rank) is kept inside each
        format/relevance partition.
        """
        first_rows: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            url = (row.get("image_url") or "").strip()
            if url and url not in first_rows:
                first_rows[url] = row

        results = []
        for ref in self.order_media(first_rows.keys(), tokens)[: self.IMAGE_RESULT_LIMIT]:
            row = first_rows[ref.url]
            results.append(
                MediaResult(
                    image_url=ref.url,
                    format=ref.format,
                    relevant=ref.relevant,
                    title=row.get("title"),
                    url=row["url"],
                    title_priority=int(row.get("title_priority") or 5),
                    image_format_priority=format_priority(ref.format),
                    title_length=int(row.get("title_length") or 0),
                )
            )
        logger.info("Assembled %d image results from %d unique urls", len(results), len(first_rows))
        return results
