"""
Query planning for the FTS5 page index.
- Boolean-OR match expression over expanded tokens
- Title-priority CASE keys computed from the original query, not the expansion
- Text (grouped per page) and image (flat) retrieval statements
"""

import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

# Checked in order; a URL belongs to the first format whose marker it contains.
MEDIA_FORMATS: Tuple[str, ...] = ("jpg", "jpeg", "png", "webp")
OTHER_FORMAT = "other"

MEDIA_DELIMITER = "|||"

# Registered on every index connection; SQLite's LOWER() only folds ASCII.
SQL_LOWER_FUNCTION = "unicode_lower"


def unicode_lower(value: Optional[str]) -> Optional[str]:
    """NFC-compose and lowercase, so titles and queries fold the same way."""
    if value is None:
        return None
    return unicodedata.normalize("NFC", value).lower()


_TITLE_PRIORITY_SQL = """
    CASE
        WHEN unicode_lower(TRIM(p.title)) = :title_query THEN 1
        WHEN unicode_lower(TRIM(p.title)) LIKE :title_pattern || ' - %' ESCAPE '\\' THEN 2
        WHEN unicode_lower(p.title) LIKE :title_pattern || '%' ESCAPE '\\' THEN 3
        WHEN unicode_lower(p.title) LIKE '%' || :title_pattern || '%' ESCAPE '\\' THEN 4
        ELSE 5
    END
"""


def _format_priority_sql(column: str) -> str:
    whens = "\n".join(
        f"        WHEN LOWER({column}) LIKE '%.{fmt}%' THEN {rank}"
        for rank, fmt in enumerate(MEDIA_FORMATS, start=1)
    )
    return f"\n    CASE\n{whens}\n        ELSE {len(MEDIA_FORMATS) + 1}\n    END\n"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the query is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_match_expression(tokens: Iterable[str]) -> str:
    """Quote each token and join with OR for an FTS5 MATCH."""
    quoted = ['"' + t.replace('"', '""') + '"' for t in tokens if t]
    return " OR ".join(quoted)


@dataclass
class QueryPlan:
    """A ready-to-execute statement plus its named parameters."""
    kind: str
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)
    limit: int = 0


class QueryPlanner:
    """Builds retrieval statements; the title keys come from the raw query."""

    TEXT_LIMIT = 10
    IMAGE_LIMIT = 100
    IMAGE_CANDIDATE_LIMIT = 200

    def _title_params(self, query: str) -> Dict[str, Any]:
        title_query = unicode_lower(query.strip())
        return {"title_query": title_query, "title_pattern": escape_like(title_query)}

    def plan_text(self, query: str, tokens: Sequence[str], limit: int = TEXT_LIMIT) -> QueryPlan:
        """Pages grouped with their concatenated media, best title match first."""
        sql = f"""
            WITH matches AS (
                SELECT rowid AS page_id, rank AS fts_rank
                FROM pages_fts
                WHERE pages_fts MATCH :match
            )
            SELECT p.id, p.title, p.url, p.description, p.content, p.favicon,
                   GROUP_CONCAT(i.image_url, '{MEDIA_DELIMITER}') AS images,
                   {_TITLE_PRIORITY_SQL} AS title_priority,
                   LENGTH(COALESCE(p.title, '')) AS title_length,
                   m.fts_rank AS fts_rank
            FROM matches m
            INNER JOIN pages p ON p.id = m.page_id
            LEFT JOIN images i ON i.page_id = p.id
            GROUP BY p.id
            ORDER BY title_priority ASC, title_length ASC, fts_rank ASC
            LIMIT :limit
        """
        params = self._title_params(query)
        params.update({"match": build_match_expression(tokens), "limit": limit})
        return QueryPlan(kind="search", sql=sql, params=params, limit=limit)

    def plan_images(
        self, query: str, tokens: Sequence[str], limit: int = IMAGE_CANDIDATE_LIMIT
    ) -> QueryPlan:
        """Media rows joined directly to matching pages, jpg-first within a title tier."""
        sql = f"""
            WITH matches AS (
                SELECT rowid AS page_id, rank AS fts_rank
                FROM pages_fts
                WHERE pages_fts MATCH :match
            )
            SELECT DISTINCT i.image_url, p.title, p.url,
                   {_TITLE_PRIORITY_SQL} AS title_priority,
                   {_format_priority_sql("i.image_url")} AS image_format_priority,
                   LENGTH(COALESCE(p.title, '')) AS title_length,
                   m.fts_rank AS fts_rank
            FROM matches m
            INNER JOIN pages p ON p.id = m.page_id
            INNER JOIN images i ON i.page_id = p.id
            WHERE TRIM(COALESCE(i.image_url, '')) != ''
            ORDER BY title_priority ASC, image_format_priority ASC, title_length ASC, fts_rank ASC
            LIMIT :limit
        """
        params = self._title_params(query)
        params.update({"match": build_match_expression(tokens), "limit": limit})
        return QueryPlan(kind="images", sql=sql, params=params, limit=limit)

    def plan_title_lookup(self, query: str) -> QueryPlan:
        """Single best title match for the knowledge card: exact, then suffix, then substring."""
        sql = f"""
            SELECT p.title, p.url, p.description, p.content,
                   {_TITLE_PRIORITY_SQL} AS title_priority
            FROM pages p
            WHERE unicode_lower(TRIM(p.title)) = :title_query
               OR unicode_lower(TRIM(p.title)) LIKE :title_pattern || ' - %' ESCAPE '\\'
               OR unicode_lower(p.title) LIKE '%' || :title_pattern || '%' ESCAPE '\\'
            ORDER BY title_priority ASC, LENGTH(COALESCE(p.title, '')) ASC
            LIMIT 1
        """
        return QueryPlan(kind="title", sql=sql, params=self._title_params(query), limit=1)
