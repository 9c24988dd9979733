"""
Personalization tracking.
- In-memory click counts per URL (LRU-bounded key space)
- Timestamped search history in a bounded FIFO buffer
- Click-count re-ranking with a stable descending sort
- Keyword-based interest categories from search history
- Privacy clearing of old or all history
- One mutex guards all state so concurrent updates are not lost
"""

import logging
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("personalization")

INTEREST_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("music", ("music", "song", "singer")),
    ("movies", ("movie", "film", "actor")),
    ("books", ("book", "author", "novel")),
    ("technology", ("tech", "software", "computer")),
)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class SearchHistoryEntry:
    query: str
    timestamp: float


class PersonalizationTracker:
    """Process-lifetime click and search history for one deployment."""

    MAX_HISTORY_SIZE = 1000
    MAX_TRACKED_URLS = 10000

    def __init__(
        self,
        max_history_size: int = MAX_HISTORY_SIZE,
        max_tracked_urls: Optional[int] = MAX_TRACKED_URLS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize PersonalizationTracker.

        Args:
            max_history_size: Search history capacity; the oldest entry is evicted on overflow
            max_tracked_urls: Click-count capacity (least recently clicked evicted); None for unbounded
            clock: Time source in epoch seconds
        """
        self.max_history_size = max_history_size
        self.max_tracked_urls = max_tracked_urls
        self._clock = clock
        self._lock = threading.Lock()
        self._clicks: "OrderedDict[str, int]" = OrderedDict()
        self._history: Deque[SearchHistoryEntry] = deque(maxlen=max_history_size)

    # ---------------------- Recording ----------------------
    def record_click(self, url: str) -> int:
        """Increment the click count for url; returns the new count."""
        with self._lock:
            count = self._clicks.pop(url, 0) + 1
            self._clicks[url] = count
            if self.max_tracked_urls is not None:
                while len(self._clicks) > self.max_tracked_urls:
                    evicted, _ = self._clicks.popitem(last=False)
                    logger.debug("Evicted click history for %s", evicted)
        return count

    def record_search(self, query: str) -> None:
        entry = SearchHistoryEntry(query=query.lower(), timestamp=self._clock())
        with self._lock:
            self._history.append(entry)

    @property
    def search_history(self) -> List[SearchHistoryEntry]:
        with self._lock:
            return list(self._history)

    # ---------------------- Scoring ----------------------
    def get_score(self, url: str) -> int:
        with self._lock:
            return self._clicks.get(url, 0)

    def personalize(self, results: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Return copies of results carrying personalization_score, most-clicked first.
        Equal scores keep their incoming order.
        """
        with self._lock:
            scored = [
                {**result, "personalization_score": self._clicks.get(result.get("url"), 0)}
                for result in results
            ]
        scored.sort(key=lambda r: r["personalization_score"], reverse=True)
        return scored

    def get_interest_categories(self) -> Dict[str, int]:
        categories: Dict[str, int] = {}
        for entry in self.search_history:
            for category, keywords in INTEREST_KEYWORDS:
                if any(keyword in entry.query for keyword in keywords):
                    categories[category] = categories.get(category, 0) + 1
        return categories

    # ---------------------- Privacy ----------------------
    def clear_old_history(self, days_old: float = 30) -> int:
        """Drop search history at or before the cutoff; returns the number removed."""
        cutoff = self._clock() - days_old * SECONDS_PER_DAY
        with self._lock:
            kept = [e for e in self._history if e.timestamp > cutoff]
            removed = len(self._history) - len(kept)
            self._history = deque(kept, maxlen=self.max_history_size)
        logger.info("Cleared %d search history entries older than %s days", removed, days_old)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._clicks.clear()
            self._history.clear()
        logger.info("Cleared all click and search history")
