"""
searchcore - query processing and title-aware ranking over a crawled page index.

Modular services:
- TokenNormalizer / SynonymExpander / SpellingCorrector: query analysis
- QueryPlanner / PageIndex / ResultAssembler: FTS5 retrieval and result shaping
- PersonalizationTracker: click-based re-ranking and search history
- ResultCache: TTL cache of base responses
- SearchService: text and image search orchestration
- IngestionService: bulk page loading from CSV/JSON
"""

__version__ = "1.0.0"
__author__ = "Search Platform Team"
