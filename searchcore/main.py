"""
FastAPI application factory for the search backend.
- GET /search and /images: normalized, expanded, title-ranked retrieval with spelling suggestions
- POST /click, GET /interests, DELETE /history: in-memory personalization
- POST /ingest: multipart CSV/JSON page upload into the FTS5 index
- GET /health, /api/health: liveness and index connectivity

Run with: uvicorn searchcore.main:create_app --factory
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import os
import time
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from searchcore.services.cache import ResultCache
from searchcore.services.index import IndexUnavailableError, PageIndex
from searchcore.services.ingestion import IngestionService
from searchcore.services.normalizer import TokenNormalizer
from searchcore.services.personalization import PersonalizationTracker
from searchcore.services.search import SearchService
from searchcore.services.spelling import SpellingCorrector

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

# Settings (configurable via environment variables)
BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DB_PATH = os.getenv("DB_PATH") or os.path.join(BASE_DIR, "db", "crawler_data.db")
CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", ResultCache.DEFAULT_TTL_SECONDS))
CACHE_CHECK_PERIOD_SECONDS = float(os.getenv("CACHE_CHECK_PERIOD_SECONDS", ResultCache.CHECK_PERIOD_SECONDS))
HISTORY_MAX_SIZE = int(os.getenv("HISTORY_MAX_SIZE", PersonalizationTracker.MAX_HISTORY_SIZE))
MAX_TRACKED_URLS = int(os.getenv("MAX_TRACKED_URLS", PersonalizationTracker.MAX_TRACKED_URLS))
VOCAB_SAMPLE_SIZE = int(os.getenv("VOCAB_SAMPLE_SIZE", SpellingCorrector.SAMPLE_SIZE))
VOCAB_RETRY_SECONDS = float(os.getenv("VOCAB_RETRY_SECONDS", SpellingCorrector.RETRY_SECONDS))
SPELLING_THRESHOLD = float(os.getenv("SPELLING_THRESHOLD", SpellingCorrector.SIMILARITY_THRESHOLD))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


class ClickRequest(BaseModel):
    """Click tracking request payload."""
    url: str = Field(..., min_length=1, max_length=2048, description="Clicked result URL")


def create_app(
    db_path: Optional[str] = None,
    search_service: Optional[SearchService] = None,
    start_vocabulary_build: bool = True,
) -> FastAPI:
    """
    Build the application and its services.

    Args:
        db_path: SQLite database path; defaults to DB_PATH
        search_service: Pre-built service (tests inject their own)
        start_vocabulary_build: Start the background spelling vocabulary build on startup
    """
    if search_service is None:
        index = PageIndex(db_path or DB_PATH)
        normalizer = TokenNormalizer()
        search_service = SearchService(
            index=index,
            normalizer=normalizer,
            tracker=PersonalizationTracker(
                max_history_size=HISTORY_MAX_SIZE,
                max_tracked_urls=MAX_TRACKED_URLS or None,
            ),
            cache=ResultCache(
                ttl_seconds=CACHE_TTL_SECONDS,
                check_period_seconds=CACHE_CHECK_PERIOD_SECONDS,
            ),
            corrector=SpellingCorrector(
                index,
                normalizer=normalizer,
                threshold=SPELLING_THRESHOLD,
                sample_size=VOCAB_SAMPLE_SIZE,
                retry_seconds=VOCAB_RETRY_SECONDS,
            ),
        )
    service = search_service
    ingestion_service = IngestionService(index=service.index)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if start_vocabulary_build:
            service.corrector.start()
        yield
        service.corrector.stop(timeout=1.0)

    app = FastAPI(title="searchcore", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.search_service = service

    @app.get("/health")
    def health():
        """Basic health check."""
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health():
        """Health check including index connectivity."""
        try:
            service.index.ping()
        except IndexUnavailableError as e:
            return JSONResponse(
                {"status": "unhealthy", "database": "disconnected", "error": str(e)},
                status_code=503,
            )
        return {
            "status": "healthy",
            "database": "connected",
            "uptime": round(time.monotonic() - started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/search")
    def search(
        q: str = Query("", max_length=500, description="Search query"),
        personalize: bool = Query(True, description="Re-rank by click history"),
    ):
        """
        Text search over crawled pages.
        - Advisory spelling suggestion
        - Stopword removal, stemming and synonym expansion for recall
        - Literal title matches rank ahead of raw FTS rank
        - Up to 4 media per page, jpg first, query-matching first
        - Optional knowledge card and click-based personalization
        """
        start_time = time.perf_counter()
        try:
            logger.info("GET /search start: q='%s', personalize=%s", q, personalize)
            result = service.text_search(q, personalize=personalize)
            result["latency_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "GET /search success: results=%d, latency=%.2fms",
                len(result["results"]),
                result["latency_ms"],
            )
            return JSONResponse(result)
        except IndexUnavailableError as e:
            logger.exception("GET /search index error: latency=%.2fms", (time.perf_counter() - start_time) * 1000)
            raise HTTPException(status_code=503, detail={"error": "Index unavailable", "message": str(e)})
        except Exception as e:
            logger.exception("GET /search error: latency=%.2fms", (time.perf_counter() - start_time) * 1000)
            raise HTTPException(status_code=500, detail={"error": "Search error", "message": str(e)})

    @app.get("/images")
    def images(q: str = Query("", max_length=500, description="Search query")):
        """Image search: up to 100 deduplicated images from matching pages."""
        start_time = time.perf_counter()
        try:
            logger.info("GET /images start: q='%s'", q)
            result = service.image_search(q)
            result["latency_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "GET /images success: results=%d, latency=%.2fms",
                len(result["results"]),
                result["latency_ms"],
            )
            return JSONResponse(result)
        except IndexUnavailableError as e:
            logger.exception("GET /images index error: latency=%.2fms", (time.perf_counter() - start_time) * 1000)
            raise HTTPException(status_code=503, detail={"error": "Index unavailable", "message": str(e)})
        except Exception as e:
            logger.exception("GET /images error: latency=%.2fms", (time.perf_counter() - start_time) * 1000)
            raise HTTPException(status_code=500, detail={"error": "Search error", "message": str(e)})

    @app.post("/click")
    def click(event: ClickRequest):
        """Record a result click for personalization."""
        result = service.record_click(event.url)
        logger.info("POST /click: url=%s, clicks=%d", event.url, result["clicks"])
        return result

    @app.get("/interests")
    def interests():
        """Interest categories derived from search history."""
        return service.get_interest_categories()

    @app.delete("/history")
    def clear_history(
        days_old: float = Query(30, ge=0, description="Drop search history older than this many days"),
        clear_all: bool = Query(False, alias="all", description="Drop all click and search history"),
    ):
        """Privacy: clear old search history, or everything."""
        if clear_all:
            service.tracker.clear()
            return {"status": "cleared", "removed": None}
        removed = service.tracker.clear_old_history(days_old=days_old)
        return {"status": "cleared", "removed": removed}

    @app.post("/ingest")
    async def ingest(file: UploadFile = File(...)):
        """
        Ingest pages uploaded as a multipart file (CSV or JSON).
        - Parses with pandas and normalizes page fields
        - Stores pages and media in SQLite (FTS5 kept in sync by triggers)
        - Clears cached results and rebuilds the spelling vocabulary
        """
        start_time = time.perf_counter()
        try:
            filename = file.filename or "uploaded"
            content_type = file.content_type or "application/octet-stream"
            content = await file.read()
            if not content:
                raise HTTPException(status_code=400, detail="Empty file upload")

            logger.info("POST /ingest start: filename=%s, size=%d bytes", filename, len(content))
            result = ingestion_service.ingest_bytes(
                content_bytes=content,
                filename=filename,
                content_type=content_type,
            )
            if result.get("inserted"):
                service.cache.clear()
                service.corrector.refresh()
            result["latency_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "POST /ingest success: inserted=%d, skipped=%d, latency=%.2fms",
                result.get("inserted", 0),
                result.get("skipped", 0),
                result["latency_ms"],
            )
            return JSONResponse(result)
        except HTTPException as he:
            logger.warning("POST /ingest failed with status %d", he.status_code)
            raise he
        except ValueError as e:
            logger.warning("POST /ingest rejected: %s", e)
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.exception("POST /ingest error: latency=%.2fms", (time.perf_counter() - start_time) * 1000)
            raise HTTPException(status_code=500, detail=f"Ingestion error: {str(e)}")

    return app
