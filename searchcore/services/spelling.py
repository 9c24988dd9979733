"""
Spelling suggestions.
- Vocabulary built from a bounded sample of indexed titles/descriptions
- Background build thread: one instance at a time, cancellable, fixed-delay retry
- Word-level nearest match via difflib similarity with a minimum cutoff
- Suggestions are advisory and never feed the retrieval predicate
"""

import logging
import threading
import unicodedata
from difflib import get_close_matches
from typing import FrozenSet, List, Optional

from searchcore.services.index import IndexUnavailableError, PageIndex
from searchcore.services.normalizer import STOPWORDS, TokenNormalizer

logger = logging.getLogger("spelling")


class SpellingCorrector:
    """Dictionary-driven query correction backed by the page index."""

    SIMILARITY_THRESHOLD = 0.4
    SAMPLE_SIZE = 1000
    RETRY_SECONDS = 5.0
    INITIAL_DELAY_SECONDS = 2.0
    MIN_WORD_LENGTH = 3

    def __init__(
        self,
        index: PageIndex,
        normalizer: Optional[TokenNormalizer] = None,
        threshold: float = SIMILARITY_THRESHOLD,
        sample_size: int = SAMPLE_SIZE,
        retry_seconds: float = RETRY_SECONDS,
        initial_delay: float = INITIAL_DELAY_SECONDS,
    ) -> None:
        self.index = index
        self.normalizer = normalizer or TokenNormalizer()
        self.threshold = threshold
        self.sample_size = sample_size
        self.retry_seconds = retry_seconds
        self.initial_delay = initial_delay

        self._vocabulary: FrozenSet[str] = frozenset()
        self._vocabulary_list: List[str] = []
        self._ready = threading.Event()
        self._stop = threading.Event()
        self._rebuild_requested = threading.Event()
        self._thread_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def vocabulary(self) -> FrozenSet[str]:
        return self._vocabulary

    # ---------------------- Vocabulary Build ----------------------
    def build_vocabulary(self) -> bool:
        """
        Single build attempt. Returns True when a non-empty vocabulary was installed.
        An empty or unreadable sample leaves the previous vocabulary in place.
        """
        try:
            rows = self.index.sample_vocabulary(self.sample_size)
        except IndexUnavailableError as e:
            logger.warning("Vocabulary sample unreadable: %s", e)
            return False

        if not rows:
            logger.info("No pages found for vocabulary - index might be empty")
            return False

        words = set()
        for title, description in rows:
            for text in (title, description):
                if text:
                    words.update(w for w in self.normalizer.tokenize(text) if len(w) >= self.MIN_WORD_LENGTH)

        if not words:
            logger.info("Vocabulary sample had no usable words")
            return False

        self._vocabulary = frozenset(words)
        self._vocabulary_list = sorted(words)
        self._ready.set()
        logger.info("Vocabulary built with %d unique words", len(words))
        return True

    def _run(self, initial_delay: float) -> None:
        if self._stop.wait(initial_delay):
            return
        while not self._stop.is_set():
            self._rebuild_requested.clear()
            built = self.build_vocabulary()
            with self._thread_lock:
                if self._rebuild_requested.is_set():
                    continue
                if built:
                    if self._thread is threading.current_thread():
                        self._thread = None
                    return
            self._stop.wait(self.retry_seconds)

    def start(self, initial_delay: Optional[float] = None) -> bool:
        """Launch the background build unless one is already running."""
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            self._stop.clear()
            delay = self.initial_delay if initial_delay is None else initial_delay
            self._thread = threading.Thread(
                target=self._run, args=(delay,), name="vocabulary-build", daemon=True
            )
            self._thread.start()
            return True

    def refresh(self) -> bool:
        """
        Rebuild in the background, e.g. after new pages were ingested.
        If a build is already running, it samples again before exiting.
        Returns True if a new build thread was started.
        """
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                self._rebuild_requested.set()
                logger.info("Vocabulary build in progress; rebuild queued")
                return False
        return self.start(initial_delay=0.0)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        with self._thread_lock:
            thread = self._thread
        if thread is not None:
            thread.join(timeout)

    # ---------------------- Correction ----------------------
    def correct(self, query: str) -> Optional[str]:
        """Corrected lowercase query, or None if nothing changed or no vocabulary yet."""
        vocabulary = self._vocabulary_list
        if not vocabulary or not query:
            return None

        changed = False
        corrected = []
        for word in unicodedata.normalize("NFC", query).lower().split():
            if len(word) < self.MIN_WORD_LENGTH or word in STOPWORDS:
                corrected.append(word)
                continue
            matches = get_close_matches(word, vocabulary, n=1, cutoff=self.threshold)
            if matches and matches[0] != word:
                changed = True
                corrected.append(matches[0])
            else:
                corrected.append(word)

        return " ".join(corrected) if changed else None
