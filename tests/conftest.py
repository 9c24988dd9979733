"""
Pytest configuration and fixtures.
"""
import pytest

from searchcore.services.cache import ResultCache
from searchcore.services.index import IndexUnavailableError, PageIndex
from searchcore.services.personalization import PersonalizationTracker
from searchcore.services.search import SearchService
from searchcore.services.spelling import SpellingCorrector


SAMPLE_PAGES = [
    {
        "url": "https://example.org/travel-guide",
        "title": "Travel guide",
        "description": "Where to go in Paris and beyond",
        "content": "Paris is one of many destinations covered here.",
        "images": ["https://img.example.org/guide-cover.jpg"],
    },
    {
        "url": "https://example.org/the-city-of-paris",
        "title": "The City of Paris",
        "description": "A history of the city",
        "content": "The city grew along the Seine.",
        "images": [],
    },
    {
        "url": "https://example.org/paris-hilton",
        "title": "Paris Hilton",
        "description": "Media personality",
        "content": "Paris Hilton is an American media personality.",
        "images": ["https://img.example.org/hilton.png"],
    },
    {
        "url": "https://en.wikipedia.org/wiki/Paris",
        "title": "Paris - Wikipedia",
        "description": "Encyclopedia article",
        "content": "Paris is the capital of France.",
        "images": [
            "https://img.example.org/louvre.jpg",
            "https://img.example.org/wiki-logo.svg",
        ],
    },
    {
        "url": "https://example.org/paris",
        "title": "Paris",
        "description": "",
        "content": (
            "Paris. Paris is the capital and most populous city of France. "
            "It is known for museums and architecture."
        ),
        "images": [
            "https://img.example.org/river.webp",
            "https://img.example.org/logo.svg",
            "https://img.example.org/louvre.jpg",
            "",
            "https://img.example.org/paris-skyline.jpg",
            "https://img.example.org/paris-eiffel.png",
            "https://img.example.org/paris-skyline.jpg",
        ],
    },
    {
        "url": "https://example.org/cats",
        "title": "Cute cats",
        "description": "A picture gallery of cats playing",
        "content": "Cats are small carnivorous mammals.",
        "images": ["https://img.example.org/cat-photo.jpg"],
    },
]


class CountingIndex(PageIndex):
    """PageIndex that counts retrieval calls."""

    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self.fetch_calls = 0

    def fetch(self, plan):
        self.fetch_calls += 1
        return super().fetch(plan)


class FailingIndex(PageIndex):
    """PageIndex whose retrieval always fails."""

    def fetch(self, plan):
        raise IndexUnavailableError("database is locked")


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def index(tmp_path):
    """Empty page index in a temporary database."""
    return CountingIndex(str(tmp_path / "pages.db"))


@pytest.fixture
def populated_index(index):
    index.add_pages(SAMPLE_PAGES)
    index.fetch_calls = 0
    return index


@pytest.fixture
def service(populated_index, clock):
    """SearchService over the sample pages with a fake cache clock."""
    corrector = SpellingCorrector(populated_index, initial_delay=0.0, retry_seconds=0.01)
    corrector.build_vocabulary()
    return SearchService(
        index=populated_index,
        tracker=PersonalizationTracker(),
        cache=ResultCache(clock=clock),
        corrector=corrector,
    )


@pytest.fixture
def failing_service(tmp_path):
    index = FailingIndex(str(tmp_path / "failing.db"))
    return SearchService(index=index, corrector=SpellingCorrector(index))
