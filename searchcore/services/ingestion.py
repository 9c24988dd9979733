"""
Ingestion service.
- Reads uploaded CSV/JSON bytes via pandas
- Normalizes page fields (url, title, description, content, favicon, images)
- Persists pages and media into the FTS5 page index
- Robust error handling and logging; bad rows are skipped, not fatal
"""

import io
import json
import logging
import re
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from searchcore.services.index import PageIndex

logger = logging.getLogger("ingestion")

# Accepts "a.jpg|||b.png", "a.jpg|b.png", "a.jpg, b.png" or newline-separated lists.
_MEDIA_SPLIT = re.compile(r"\s*(?:\|\|\||\||,|\n)\s*")


class IngestionService:
    """Loads page exports into the page index."""

    def __init__(self, index: PageIndex) -> None:
        self.index = index

    # ---------------------- Public API ----------------------
    def ingest_bytes(self, content_bytes: bytes, filename: str, content_type: str) -> Dict[str, Any]:
        """
        Ingest pages from raw bytes; supports CSV or JSON (array or JSON Lines).
        Returns ingestion stats.
        """
        df = self._read_to_dataframe(content_bytes, filename, content_type)
        if df.empty:
            return {
                "inserted": 0,
                "skipped": 0,
                "index_size": self.index.count(),
                "message": "No rows to ingest",
            }

        pages = self._normalize_dataframe(df)
        if not pages:
            return {
                "inserted": 0,
                "skipped": len(df),
                "index_size": self.index.count(),
                "message": "All rows invalid after normalization",
            }

        inserted, skipped = self.index.add_pages(pages)
        return {
            "inserted": inserted,
            "skipped": skipped + (len(df) - len(pages)),
            "index_size": self.index.count(),
        }

    # ---------------------- Data Reading ----------------------
    def _read_to_dataframe(self, content_bytes: bytes, filename: str, content_type: str) -> pd.DataFrame:
        """Read uploaded bytes into a DataFrame, supporting CSV and JSON."""
        name_lower = (filename or "").lower()
        ct_lower = (content_type or "").lower()
        buf = io.BytesIO(content_bytes)
        try:
            if name_lower.endswith((".json", ".jsonl")) or "json" in ct_lower:
                data = buf.getvalue().decode("utf-8")
                try:
                    parsed = json.loads(data)
                    if isinstance(parsed, dict):
                        parsed = parsed.get("pages", [parsed])
                    df = pd.DataFrame(parsed)
                except json.JSONDecodeError:
                    df = pd.read_json(io.StringIO(data), lines=True)
            else:
                if not (name_lower.endswith(".csv") or "csv" in ct_lower):
                    logger.warning("Unknown content type; attempting CSV parse")
                df = pd.read_csv(buf, encoding="utf-8", on_bad_lines="skip")
        except Exception as e:
            logger.exception("Failed to parse uploaded file")
            raise ValueError(f"Failed to parse file: {e}") from e

        df = df.dropna(how="all")
        logger.info("Read dataframe with %d rows and %d columns", len(df), len(df.columns))
        return df

    # ---------------------- Normalization ----------------------
    def _normalize_dataframe(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        Map loosely named columns onto page fields:
        - url <- 'url' | 'link' | 'href' (required)
        - title, description, content ('text' | 'body' accepted), favicon ('icon' accepted)
        - images <- list or delimited string in 'images' | 'image_urls' | 'media'
        Rows without a url are dropped; duplicate urls within the upload keep the first row.
        """
        cols = {c.lower(): c for c in df.columns}
        df = df.astype(object).where(pd.notna(df), None)

        def get_col(*names: str) -> List[Any]:
            for n in names:
                if n in cols:
                    return df[cols[n]].tolist()
            return [None] * len(df)

        def clean_text(value: Any) -> str:
            if value is None:
                return ""
            return str(value).strip()

        def parse_images(value: Any) -> List[str]:
            if value is None:
                return []
            if isinstance(value, (list, tuple, np.ndarray)):
                items = [clean_text(v) for v in value]
            else:
                text = clean_text(value)
                if text.startswith("["):
                    try:
                        items = [clean_text(v) for v in json.loads(text)]
                    except json.JSONDecodeError:
                        items = _MEDIA_SPLIT.split(text.strip("[]"))
                else:
                    items = _MEDIA_SPLIT.split(text)
            return list(dict.fromkeys(i for i in items if i))

        pages: List[Dict[str, Any]] = []
        seen = set()
        for url, title, description, content, favicon, images in zip(
            get_col("url", "link", "href"),
            get_col("title", "name"),
            get_col("description", "summary"),
            get_col("content", "text", "body"),
            get_col("favicon", "icon"),
            get_col("images", "image_urls", "media"),
        ):
            url = clean_text(url)
            if not url or url in seen:
                continue
            seen.add(url)
            pages.append(
                {
                    "url": url,
                    "title": clean_text(title),
                    "description": clean_text(description),
                    "content": clean_text(content),
                    "favicon": clean_text(favicon) or None,
                    "images": parse_images(images),
                }
            )

        logger.info("Normalized %d of %d rows into pages", len(pages), len(df))
        return pages
