"""
Search service.
- Advisory spelling suggestion for every non-empty query
- Search history recorded before the cache lookup so cache hits still count
- Token normalization + synonym expansion; an empty token set skips the index
- Knowledge card from the best literal title match
- Title-priority FTS5 retrieval, media ordering, description fallback
- Base responses cached; click personalization applied fresh on every read (text only)
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from searchcore.services.assembler import ResultAssembler, extract_description
from searchcore.services.cache import ResultCache
from searchcore.services.index import IndexUnavailableError, PageIndex
from searchcore.services.normalizer import TokenNormalizer
from searchcore.services.personalization import PersonalizationTracker
from searchcore.services.planner import QueryPlanner
from searchcore.services.spelling import SpellingCorrector
from searchcore.services.synonyms import SynonymExpander

logger = logging.getLogger("search")

TEXT_KIND = "search"
IMAGE_KIND = "images"


def empty_response(suggestion: Optional[str] = None) -> Dict[str, Any]:
    return {"results": [], "suggestion": suggestion}


class SearchService:
    """
    Orchestrates query analysis, retrieval, assembly, caching and personalization.
    All collaborators are injected so each app (or test) owns its own state.
    """

    def __init__(
        self,
        index: PageIndex,
        tracker: Optional[PersonalizationTracker] = None,
        cache: Optional[ResultCache] = None,
        corrector: Optional[SpellingCorrector] = None,
        normalizer: Optional[TokenNormalizer] = None,
        expander: Optional[SynonymExpander] = None,
        planner: Optional[QueryPlanner] = None,
        assembler: Optional[ResultAssembler] = None,
    ) -> None:
        self.index = index
        self.normalizer = normalizer or TokenNormalizer()
        self.tracker = tracker or PersonalizationTracker()
        self.cache = cache or ResultCache()
        self.corrector = corrector or SpellingCorrector(index, normalizer=self.normalizer)
        self.expander = expander or SynonymExpander()
        self.planner = planner or QueryPlanner()
        self.assembler = assembler or ResultAssembler()

    # ---------------------- Query Analysis ----------------------
    def expand_tokens(self, query: str) -> List[str]:
        return self.expander.expand(self.normalizer.normalize(query))

    def _knowledge_card(self, query: str) -> Optional[Dict[str, str]]:
        """Best literal title match, or None. Lookup failures are logged and tolerated."""
        try:
            row = self.index.fetch_one(self.planner.plan_title_lookup(query))
        except IndexUnavailableError:
            logger.exception("Knowledge card lookup failed for query '%s'", query)
            return None
        if not row:
            return None
        return {
            "title": row["title"],
            "url": row["url"],
            "description": row.get("description") or extract_description(row.get("content")),
        }

    # ---------------------- Public Search API ----------------------
    def text_search(self, query: str, personalize: bool = True) -> Dict[str, Any]:
        """
        Execute text search:
        1. Reject empty/whitespace queries without side effects
        2. Compute the advisory spelling suggestion
        3. Record the search in history
        4. Serve from cache when possible (personalized fresh)
        5. Normalize + expand tokens; nothing left means no index access
        6. Knowledge card, planned retrieval, assembly
        7. Cache the base shape, then personalize

        Returns {'knowledge_graph'?: {...}, 'results': [...], 'suggestion': str | None}.
        Raises IndexUnavailableError if the retrieval query fails.
        """
        if not query or not query.strip():
            return empty_response()

        suggestion = self.corrector.correct(query)
        self.tracker.record_search(query)

        cached = self.cache.get(TEXT_KIND, query)
        if cached is not None:
            logger.info("Cache hit for text search '%s'", query)
            return self._respond(cached, suggestion, personalize)

        tokens = self.expand_tokens(query)
        if not tokens:
            logger.info("Query '%s' has no searchable tokens", query)
            return empty_response(suggestion)

        knowledge_card = self._knowledge_card(query)
        rows = self.index.fetch(self.planner.plan_text(query, tokens))
        results = self.assembler.assemble_pages(rows, tokens)

        base: Dict[str, Any] = {"results": [r.to_dict() for r in results]}
        if knowledge_card:
            base = {"knowledge_graph": knowledge_card, **base}
        self.cache.set(TEXT_KIND, query, base)

        logger.info("Text search '%s' completed: %d results", query, len(results))
        return self._respond(base, suggestion, personalize)

    def image_search(self, query: str) -> Dict[str, Any]:
        """
        Execute image search. Same front half as text search, then a flat,
        deduplicated media list. Results are not personalized.
        """
        if not query or not query.strip():
            return empty_response()

        suggestion = self.corrector.correct(query)
        self.tracker.record_search(query)

        cached = self.cache.get(IMAGE_KIND, query)
        if cached is not None:
            logger.info("Cache hit for image search '%s'", query)
            return {"results": [dict(r) for r in cached], "suggestion": suggestion}

        tokens = self.expand_tokens(query)
        if not tokens:
            return empty_response(suggestion)

        rows = self.index.fetch(self.planner.plan_images(query, tokens))
        results = [r.to_dict() for r in self.assembler.assemble_images(rows, tokens)]
        self.cache.set(IMAGE_KIND, query, results)

        logger.info("Image search '%s' completed: %d results", query, len(results))
        return {"results": [dict(r) for r in results], "suggestion": suggestion}

    def record_click(self, url: str) -> Dict[str, Any]:
        count = self.tracker.record_click(url)
        return {"success": True, "url": url, "clicks": count}

    def get_interest_categories(self) -> Dict[str, int]:
        return self.tracker.get_interest_categories()

    # ---------------------- Helpers ----------------------
    def _respond(self, base: Dict[str, Any], suggestion: Optional[str], personalize: bool) -> Dict[str, Any]:
        """Response built from copies, so callers can never alter a cached entry."""
        response = copy.deepcopy(base)
        if personalize:
            response["results"] = self.tracker.personalize(response["results"])
        response["suggestion"] = suggestion
        return response
