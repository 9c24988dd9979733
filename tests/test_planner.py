import pytest

from searchcore.services.index import IndexUnavailableError, PageIndex
from searchcore.services.planner import QueryPlanner, build_match_expression, escape_like


def test_match_expression_quotes_and_ors_tokens() -> None:
    assert build_match_expression(["paris", "pari", ""]) == '"paris" OR "pari"'


def test_escape_like_makes_wildcards_literal() -> None:
    assert escape_like("100%_off\\") == "100\\%\\_off\\\\"


def test_title_keys_use_original_query_not_expansion() -> None:
    plan = QueryPlanner().plan_text("  Pic Of Paris ", ["pic", "picture", "paris"])

    assert plan.params["title_query"] == "pic of paris"
    assert plan.params["match"] == '"pic" OR "picture" OR "paris"'
    assert plan.params["limit"] == QueryPlanner.TEXT_LIMIT


def test_text_plan_orders_by_title_priority(populated_index) -> None:
    planner = QueryPlanner()

    rows = populated_index.fetch(planner.plan_text("Paris", ["paris", "pari"]))

    assert [r["title"] for r in rows] == [
        "Paris",
        "Paris - Wikipedia",
        "Paris Hilton",
        "The City of Paris",
        "Travel guide",
    ]
    assert [r["title_priority"] for r in rows] == [1, 2, 3, 4, 5]


def test_text_plan_groups_media_per_page(populated_index) -> None:
    rows = populated_index.fetch(QueryPlanner().plan_text("paris", ["paris"]))

    by_title = {r["title"]: r for r in rows}
    assert by_title["The City of Paris"]["images"] is None
    assert "https://img.example.org/louvre.jpg" in by_title["Paris - Wikipedia"]["images"]


def test_text_plan_respects_limit(index) -> None:
    index.add_pages(
        {"url": f"https://example.org/{i}", "title": f"Page {i}", "content": "common words"}
        for i in range(15)
    )

    rows = index.fetch(QueryPlanner().plan_text("common", ["common"]))

    assert len(rows) == 10


def test_like_wildcards_in_query_do_not_match_everything(index) -> None:
    index.add_pages(
        [
            {"url": "https://example.org/a", "title": "Sale today", "content": "sale"},
            {"url": "https://example.org/b", "title": "50% sale", "content": "sale"},
        ]
    )

    rows = index.fetch(QueryPlanner().plan_text("%", ["sale"]))

    priorities = {r["title"]: r["title_priority"] for r in rows}
    assert priorities["Sale today"] == 5
    assert priorities["50% sale"] == 4


def test_image_plan_orders_by_title_then_format(populated_index) -> None:
    rows = populated_index.fetch(QueryPlanner().plan_images("paris", ["paris"]))

    first_page = [r for r in rows if r["title"] == "Paris"]
    assert [r["image_format_priority"] for r in first_page] == sorted(
        r["image_format_priority"] for r in first_page
    )
    assert rows[0]["title_priority"] == 1
    assert all(r["image_url"].strip() for r in rows)


def test_title_lookup_prefers_exact_then_suffix(populated_index) -> None:
    planner = QueryPlanner()

    assert populated_index.fetch_one(planner.plan_title_lookup("PARIS "))["title"] == "Paris"
    assert populated_index.fetch_one(planner.plan_title_lookup("hilton"))["title"] == "Paris Hilton"
    assert populated_index.fetch_one(planner.plan_title_lookup("nothing like it")) is None


def test_add_pages_skips_existing_urls(index) -> None:
    page = {"url": "https://example.org/x", "title": "X", "images": ["https://img/x.jpg"]}

    assert index.add_pages([page]) == (1, 0)
    assert index.add_pages([page]) == (0, 1)
    assert index.count() == 1


def test_sample_vocabulary_returns_title_description_pairs(populated_index) -> None:
    sample = populated_index.sample_vocabulary(limit=2)

    assert len(sample) == 2
    assert all(len(pair) == 2 for pair in sample)


def test_unreadable_database_raises_index_unavailable(tmp_path) -> None:
    index = PageIndex(str(tmp_path / "pages.db"))
    index.db_path = str(tmp_path / "missing-dir" / "pages.db")

    with pytest.raises(IndexUnavailableError):
        index.fetch(QueryPlanner().plan_text("paris", ["paris"]))


def test_title_priority_folds_non_ascii_titles(index) -> None:
    index.add_pages(
        [
            {"url": "https://example.org/moscow", "title": "Москва", "content": "Столица России"},
            {"url": "https://example.org/zola", "title": "Émile Zola", "content": "French novelist"},
        ]
    )
    planner = QueryPlanner()

    [moscow] = index.fetch(planner.plan_text("москва", ["москва"]))
    [exact] = index.fetch(planner.plan_text("ÉMILE ZOLA", ["émile", "zola"]))
    [prefix] = index.fetch(planner.plan_text("émile", ["émile"]))

    assert moscow["title_priority"] == 1
    assert exact["title_priority"] == 1
    assert prefix["title_priority"] == 3


def test_title_lookup_matches_non_ascii_titles(index) -> None:
    index.add_pages([{"url": "https://example.org/moscow", "title": "Москва", "content": "Столица России"}])

    card = index.fetch_one(QueryPlanner().plan_title_lookup("Москва"))

    assert card["title"] == "Москва"
