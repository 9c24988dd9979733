import threading

from searchcore.services.personalization import PersonalizationTracker, SECONDS_PER_DAY


def test_scores_count_clicks_and_never_decrease() -> None:
    tracker = PersonalizationTracker()
    assert tracker.get_score("https://x") == 0

    previous = 0
    for _ in range(5):
        tracker.record_click("https://x")
        score = tracker.get_score("https://x")
        assert score >= previous
        previous = score

    assert tracker.get_score("https://x") == 5


def test_personalize_sorts_by_score_and_keeps_ties_stable() -> None:
    tracker = PersonalizationTracker()
    tracker.record_click("c")
    tracker.record_click("c")
    tracker.record_click("d")
    results = [{"url": u, "title": u.upper()} for u in ("a", "b", "c", "d", "e")]

    ranked = tracker.personalize(results)

    assert [r["url"] for r in ranked] == ["c", "d", "a", "b", "e"]
    assert [r["personalization_score"] for r in ranked] == [2, 1, 0, 0, 0]
    assert "personalization_score" not in results[0]


def test_history_is_capped_at_1000_fifo() -> None:
    tracker = PersonalizationTracker()

    for i in range(1001):
        tracker.record_search(f"Query {i}")

    history = tracker.search_history
    assert len(history) == 1000
    assert history[0].query == "query 1"
    assert history[-1].query == "query 1000"


def test_interest_categories_from_history() -> None:
    tracker = PersonalizationTracker()
    tracker.record_search("best music movie soundtrack")
    tracker.record_search("new software for computer")
    tracker.record_search("Novel by famous author")
    tracker.record_search("weather")

    assert tracker.get_interest_categories() == {"music": 1, "movies": 1, "technology": 1, "books": 1}


def test_clear_old_history_keeps_recent_entries(clock) -> None:
    tracker = PersonalizationTracker(clock=clock)
    tracker.record_search("old query")
    clock.advance(40 * SECONDS_PER_DAY)
    tracker.record_search("recent query")

    removed = tracker.clear_old_history(days_old=30)

    assert removed == 1
    assert [e.query for e in tracker.search_history] == ["recent query"]


def test_history_capacity_survives_clear_old_history(clock) -> None:
    tracker = PersonalizationTracker(max_history_size=3, clock=clock)
    tracker.clear_old_history(days_old=1)

    for i in range(5):
        tracker.record_search(str(i))

    assert [e.query for e in tracker.search_history] == ["2", "3", "4"]


def test_click_key_space_is_bounded_lru() -> None:
    tracker = PersonalizationTracker(max_tracked_urls=2)
    tracker.record_click("a")
    tracker.record_click("b")
    tracker.record_click("a")
    tracker.record_click("c")

    assert tracker.get_score("a") == 2
    assert tracker.get_score("b") == 0
    assert tracker.get_score("c") == 1


def test_concurrent_clicks_are_not_lost() -> None:
    tracker = PersonalizationTracker()

    def click_many():
        for _ in range(500):
            tracker.record_click("https://hot")

    threads = [threading.Thread(target=click_many) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert tracker.get_score("https://hot") == 4000


def test_clear_drops_everything() -> None:
    tracker = PersonalizationTracker()
    tracker.record_click("a")
    tracker.record_search("music")

    tracker.clear()

    assert tracker.get_score("a") == 0
    assert tracker.search_history == []
    assert tracker.get_interest_categories() == {}
