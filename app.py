from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.middleware.gzip import GZipMiddleware

from lib.trackid import config
from lib.trackid.duplicates import find_duplicates
from lib.trackid.index import build_index
from lib.trackid.jobs import (
    DUPLICATE_REMOVAL_JOB,
    RECONCILE_JOB,
    JobAlreadyRunningError,
    JobRegistry,
    JobState,
    NoRunningJobError,
)
from lib.trackid.matcher import match_many
from lib.trackid.models import (
    DuplicateAnalysis,
    LibraryRecord,
    QueryRecord,
    ReconcileResult,
    RemovalPlan,
    WishlistItem,
)
from lib.trackid.normalizer import format_tag
from lib.trackid.quality import format_rank
from lib.trackid.reconciler import reconcile_wishlist
from lib.trackid.removal import clean_duplicates, remove_duplicates
from lib.trackid.stores import (
    InMemoryLibraryStore,
    InMemoryWishlistStore,
    LibraryStore,
    WishlistStore,
)

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(config.LOG_LEVEL)


# =========================
# Pydantic models
# =========================

class TrackCopyModel(BaseModel):
    id: int
    file_path: str
    format: str
    quality: int
    file_size: int
    bitrate: Optional[int] = None


class DuplicateSetModel(BaseModel):
    artist: str
    album: str
    title: str
    copies: List[TrackCopyModel]


class DuplicateAnalysisResponse(BaseModel):
    duplicate_sets: List[DuplicateSetModel]
    total_duplicate_files: int
    wasted_space_bytes: int
    format_distribution: Dict[str, int]


class RemovalErrorModel(BaseModel):
    record_id: int
    file_path: str
    message: str


class RemovalResponse(BaseModel):
    dry_run: bool
    files_removed: int
    space_freed_bytes: int
    errors: List[RemovalErrorModel]


class JobStatusResponse(BaseModel):
    model_config = {"extra": "allow"}

    status: str
    kind: Optional[str] = None
    total: Optional[int] = None
    processed: Optional[int] = None
    removed: Optional[int] = None
    errors: Optional[int] = None
    freed_bytes: Optional[int] = None
    current_item: Optional[str] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    error_message: Optional[str] = None


class ReconciledItemModel(BaseModel):
    id: int
    title: str
    artist: str
    match_method: str
    confidence: float


class ReconcileResponse(BaseModel):
    total_items: int
    matched: int
    items_updated: List[ReconciledItemModel]


class WishlistItemBody(BaseModel):
    seed_artist: str
    seed_title: str
    seed_album: Optional[str] = None
    isrc: Optional[str] = None


class WishlistItemModel(BaseModel):
    id: int
    seed_artist: Optional[str] = None
    seed_title: Optional[str] = None
    seed_album: Optional[str] = None
    isrc: Optional[str] = None
    status: str


class QueryModel(BaseModel):
    artist: str
    title: str
    album: Optional[str] = None
    isrc: Optional[str] = None


class MatchRequestBody(BaseModel):
    tracks: List[QueryModel] = Field(default_factory=list)


class MatchModel(BaseModel):
    artist: str
    title: str
    matched: bool
    record_id: Optional[int] = None
    match_method: Optional[str] = None
    confidence: Optional[float] = None


class MatchResponse(BaseModel):
    library_size: int
    tracks: List[MatchModel]


# =========================
# Serialization helpers
# =========================

def _copy_to_dict(record: LibraryRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "file_path": record.file_path,
        "format": format_tag(record.format),
        "quality": format_rank(record.format),
        "file_size": record.file_size_bytes or 0,
        "bitrate": record.bitrate_kbps,
    }


def analysis_to_dict(analysis: DuplicateAnalysis) -> Dict[str, Any]:
    return {
        "duplicate_sets": [
            {
                "artist": group.artist,
                "album": group.album,
                "title": group.title,
                "copies": [_copy_to_dict(m) for m in group.members],
            }
            for group in analysis.groups
        ],
        "total_duplicate_files": analysis.total_duplicate_files,
        "wasted_space_bytes": analysis.wasted_space_bytes,
        "format_distribution": dict(analysis.format_distribution),
    }


def plan_to_dict(plan: RemovalPlan) -> Dict[str, Any]:
    return {
        "dry_run": plan.dry_run,
        "files_removed": plan.files_removed,
        "space_freed_bytes": plan.space_freed_bytes,
        "errors": [
            {"record_id": e.record_id, "file_path": e.file_path, "message": e.message}
            for e in plan.errors
        ],
    }


def reconcile_to_dict(result: ReconcileResult) -> Dict[str, Any]:
    return {
        "total_items": result.total_items,
        "matched": result.matched,
        "items_updated": [
            {
                "id": item.id,
                "title": item.title,
                "artist": item.artist,
                "match_method": item.method.value,
                "confidence": item.confidence,
            }
            for item in result.items_updated
        ],
    }


def wishlist_item_to_dict(item: WishlistItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "seed_artist": item.seed_artist,
        "seed_title": item.seed_title,
        "seed_album": item.seed_album,
        "isrc": item.isrc,
        "status": item.status.value,
    }


# =========================
# FastAPI app factory
# =========================

def _default_library_store() -> InMemoryLibraryStore:
    if not config.LIBRARY_XML_PATH:
        logger.info("trackid: LIBRARY_XML_PATH not set; starting with an empty library")
        return InMemoryLibraryStore()
    try:
        store = InMemoryLibraryStore.from_rekordbox_xml(config.LIBRARY_XML_PATH)
    except (OSError, ValueError, OverflowError, TimeoutError) as e:
        logger.error(f"trackid: failed to load library from {config.LIBRARY_XML_PATH}: {e}")
        return InMemoryLibraryStore()
    logger.info(f"trackid: loaded {len(store)} tracks from {config.LIBRARY_XML_PATH}")
    return store


def create_app(
    library_store: Optional[LibraryStore] = None,
    wishlist_store: Optional[WishlistStore] = None,
    registry: Optional[JobRegistry] = None,
) -> FastAPI:
    app = FastAPI(
        title="Track Identity",
        version="1.0.0",
    )

    app.state.library_store = library_store if library_store is not None else _default_library_store()
    app.state.wishlist_store = wishlist_store if wishlist_store is not None else InMemoryWishlistStore()
    app.state.jobs = registry if registry is not None else JobRegistry()

    # Add GZip middleware for response compression (duplicate reports get large)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # =========================
    # Health check
    # =========================

    @app.get("/health", tags=["system"])
    def health() -> Dict[str, Any]:
        return {"ok": True, "status": "ok"}

    @app.get("/", tags=["system"])
    def root() -> Dict[str, Any]:
        return {"ok": True, "status": "ok"}

    # =========================
    # Duplicates
    # =========================

    @app.get("/api/library/duplicates", response_model=DuplicateAnalysisResponse, tags=["library"])
    def get_duplicates(request: Request):
        try:
            analysis = find_duplicates(request.app.state.library_store.list_records())
        except Exception as e:
            logger.error(f"[api/library/duplicates] analysis error: {e}")
            raise HTTPException(
                status_code=500,
                detail={"error": "Failed to analyze duplicates", "details": str(e)},
            )
        return analysis_to_dict(analysis)

    @app.delete("/api/library/duplicates", response_model=RemovalResponse, tags=["library"])
    def delete_duplicates(
        request: Request,
        dry_run: bool = Query(True, alias="dryRun", description="Preview only when true"),
    ):
        store = request.app.state.library_store
        if dry_run:
            try:
                analysis = find_duplicates(store.list_records())
                plan = remove_duplicates(analysis.groups, store, dry_run=True)
            except Exception as e:
                logger.error(f"[api/library/duplicates] removal error dry_run=True: {e}")
                raise HTTPException(
                    status_code=500,
                    detail={"error": "Failed to remove duplicates", "details": str(e)},
                )
            return plan_to_dict(plan)

        # Executing shares the single duplicate-removal slot with the clean job
        jobs: JobRegistry = request.app.state.jobs
        try:
            job = jobs.run(DUPLICATE_REMOVAL_JOB, clean_duplicates, store, dry_run=False)
        except JobAlreadyRunningError as e:
            raise HTTPException(
                status_code=409,
                detail={"error": "A duplicate removal is already running", **e.job.to_dict()},
            )
        if job.status == JobState.ERROR:
            raise HTTPException(
                status_code=500,
                detail={"error": "Failed to remove duplicates", "details": job.error_message},
            )
        return plan_to_dict(job.result)

    @app.post("/api/library/duplicates/clean", tags=["library"])
    def start_duplicate_clean(request: Request, background_tasks: BackgroundTasks):
        jobs: JobRegistry = request.app.state.jobs
        try:
            job = jobs.start(DUPLICATE_REMOVAL_JOB)
        except JobAlreadyRunningError as e:
            raise HTTPException(
                status_code=409,
                detail={"error": "A duplicate clean job is already running", **e.job.to_dict()},
            )

        # Runs after the response is sent
        background_tasks.add_task(
            jobs.execute,
            job,
            clean_duplicates,
            request.app.state.library_store,
            dry_run=False,
        )
        return {"message": "Duplicate clean started", "status": JobState.RUNNING.value}

    @app.get(
        "/api/library/duplicates/clean",
        response_model=JobStatusResponse,
        response_model_exclude_unset=True,
        tags=["library"],
    )
    def get_duplicate_clean_status(request: Request):
        job = request.app.state.jobs.get(DUPLICATE_REMOVAL_JOB)
        if job is None:
            return {"status": JobState.IDLE.value}
        return job.to_dict()

    @app.delete("/api/library/duplicates/clean", tags=["library"])
    def cancel_duplicate_clean(request: Request):
        try:
            request.app.state.jobs.cancel(DUPLICATE_REMOVAL_JOB)
        except NoRunningJobError:
            raise HTTPException(status_code=400, detail="No running duplicate clean job")
        return {"message": "Cancellation requested"}

    # =========================
    # Wishlist
    # =========================

    @app.get("/api/wishlist", response_model=List[WishlistItemModel], tags=["wishlist"])
    def list_wishlist(request: Request):
        items = request.app.state.wishlist_store.list_items(())
        return [wishlist_item_to_dict(item) for item in items]

    @app.post("/api/wishlist", response_model=WishlistItemModel, tags=["wishlist"])
    def add_wishlist_item(body: WishlistItemBody, request: Request):
        item = request.app.state.wishlist_store.add(
            body.seed_artist,
            body.seed_title,
            seed_album=body.seed_album,
            isrc=body.isrc,
        )
        return wishlist_item_to_dict(item)

    @app.post("/api/wishlist/reconcile", response_model=ReconcileResponse, tags=["wishlist"])
    def reconcile(request: Request):
        jobs: JobRegistry = request.app.state.jobs
        try:
            job = jobs.run(
                RECONCILE_JOB,
                reconcile_wishlist,
                request.app.state.wishlist_store,
                request.app.state.library_store,
            )
        except JobAlreadyRunningError:
            raise HTTPException(status_code=409, detail="A reconciliation is already running")

        if job.status == JobState.ERROR:
            raise HTTPException(
                status_code=500,
                detail={"error": "Reconciliation failed", "details": job.error_message},
            )
        return reconcile_to_dict(job.result)

    # =========================
    # Matching
    # =========================

    @app.post("/api/match", response_model=MatchResponse, tags=["match"])
    def match(body: MatchRequestBody, request: Request):
        records = request.app.state.library_store.list_records()
        index = build_index(records)
        queries = [
            QueryRecord(artist=t.artist, title=t.title, album=t.album, isrc=t.isrc)
            for t in body.tracks
        ]
        results = match_many(queries, index)

        tracks: List[Dict[str, Any]] = []
        for query, result in zip(queries, results):
            tracks.append({
                "artist": query.artist,
                "title": query.title,
                "matched": result is not None,
                "record_id": result.record_id if result else None,
                "match_method": result.method.value if result else None,
                "confidence": result.confidence if result else None,
            })
        return {"library_size": len(index), "tracks": tracks}


app = create_app()


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=config.PORT,
        reload=True,
    )
