"""
FramePerfect Main Application
=============================

FastAPI entry point for the frame curation service.

Endpoints:
    GET    /                          - Service information
    GET    /health                    - Liveness probe
    GET    /stats                     - Pipeline status and counters
    GET    /tags                      - Smart tag suggestions
    GET    /frames                    - Visible frames (filter query params)
    GET    /frames/{id}               - One frame including image payloads
    POST   /scan                      - Start scanning a video file
    POST   /frames/{id}/toggle        - Flip the keeper flag
    POST   /selection/clear           - Deselect every keeper
    POST   /frames/{id}/enhance       - Enhance one frame
    POST   /frames/{id}/save-version  - Save an enhanced image as a new frame
    POST   /enhance/batch             - Enhance every keeper with one style
    POST   /export                    - Export keepers as a zip bundle
    DELETE /project                   - Discard the current project
    WS     /ws/stats                  - Real-time pipeline status
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from frameperfect.config import Settings, settings
from frameperfect.capabilities import (
    GeminiAnalysisEngine,
    GeminiEnhancementEngine,
    MockAnalysisEngine,
    MockEnhancementEngine,
)
from frameperfect.errors import (
    CurationInputError,
    ExportError,
    FrameNotFoundError,
    ScanInProgressError,
)
from frameperfect.models.api import (
    BatchEnhanceRequest,
    EnhanceRequest,
    ExportRequest,
    ScanRequest,
)
from frameperfect.models.filters import (
    FilterSpec,
    LibrarySubView,
    ScanSettings,
    ViewMode,
)
from frameperfect.models.frame import Frame, FrameQuality, ShotType
from frameperfect.pipeline.retry import RetryPolicy
from frameperfect.pipeline.session import CurationSession
from frameperfect.sampling import FrameSampler, OpenCVVideoSource, VideoOpenError
from frameperfect.store.persistence import (
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceGateway,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[CurationSession] = None
_scan_task: Optional[asyncio.Task] = None
_scan_error: Optional[str] = None
_startup_time: float = 0.0
_shutdown_flag: bool = False


def get_session() -> CurationSession:
    if _session is None:
        raise RuntimeError("Session not initialized")
    return _session


def is_scan_running() -> bool:
    return _scan_task is not None and not _scan_task.done()


# =============================================================================
# Component Factories
# =============================================================================

def create_analysis_engine(
    config: Settings = settings,
) -> Union[MockAnalysisEngine, GeminiAnalysisEngine]:
    """Create the analysis backend selected in config."""
    backend = config.analysis.backend

    if backend == "mock":
        logger.info("Using MockAnalysisEngine")
        return MockAnalysisEngine()
    elif backend == "gemini":
        return GeminiAnalysisEngine(
            model=config.analysis.model,
            api_key_env=config.gemini.api_key_env,
        )
    else:
        raise ValueError(f"Unknown analysis backend: {backend}")


def create_enhancement_engine(
    config: Settings = settings,
) -> Union[MockEnhancementEngine, GeminiEnhancementEngine]:
    """Create the enhancement backend selected in config."""
    backend = config.enhancement.backend

    if backend == "mock":
        logger.info("Using MockEnhancementEngine")
        return MockEnhancementEngine()
    elif backend == "gemini":
        return GeminiEnhancementEngine(
            model=config.enhancement.model,
            api_key_env=config.gemini.api_key_env,
        )
    else:
        raise ValueError(f"Unknown enhancement backend: {backend}")


def create_persistence(config: Settings = settings) -> PersistenceGateway:
    """Create the project persistence backend selected in config."""
    backend = config.persistence.backend

    if backend == "json":
        logger.info(f"Persisting project to {config.persistence.path}")
        return JsonFilePersistence(config.persistence.path)
    elif backend == "memory":
        logger.info("Using in-memory project persistence")
        return InMemoryPersistence()
    else:
        raise ValueError(f"Unknown persistence backend: {backend}")


def create_session(config: Settings = settings) -> CurationSession:
    """Build a CurationSession from settings."""
    analysis_retry = config.analysis.retry
    enhancement_retry = config.enhancement.retry

    return CurationSession(
        analysis_engine=create_analysis_engine(config),
        enhancement_engine=create_enhancement_engine(config),
        gateway=create_persistence(config),
        sampler=FrameSampler(
            max_capture_width=config.sampling.max_capture_width,
            max_frames=config.sampling.max_frames,
            jpeg_quality=config.sampling.jpeg_quality,
        ),
        analysis_policy=RetryPolicy(
            max_retries=analysis_retry.max_retries,
            base_delay=analysis_retry.base_delay_seconds,
            multiplier=analysis_retry.backoff_multiplier,
        ),
        enhancement_policy=RetryPolicy(
            max_retries=enhancement_retry.max_retries,
            base_delay=enhancement_retry.base_delay_seconds,
            multiplier=enhancement_retry.backoff_multiplier,
        ),
    )


# =============================================================================
# Serialization Helpers
# =============================================================================

IMAGE_FIELDS = {"image_b64", "enhanced_image_b64"}


def frame_payload(frame: Frame, include_images: bool = False) -> Dict[str, Any]:
    """JSON view of a frame; image payloads only on request."""
    payload = frame.model_dump(
        mode="json",
        exclude=None if include_images else IMAGE_FIELDS,
    )
    payload["quality"] = frame.quality.value
    payload["is_enhanced"] = frame.is_enhanced
    if frame.analysis is not None:
        payload["advice_items"] = frame.analysis.advice_items()
    return payload


def status_payload(session: CurationSession) -> Dict[str, Any]:
    """Pipeline status shared by /stats and /ws/stats."""
    stats = session.stats()
    label = ""
    if session.last_scan is not None:
        label = session.scan_range_label(session.video_duration, session.last_scan.range)
    return {
        **stats.model_dump(),
        "is_scanning": session.is_scanning,
        "scan_progress": round(session.scan_progress, 4),
        "scan_range": label,
        "scan_error": _scan_error,
        "analyses_in_flight": session.analysis.in_flight,
        "analysis_successes": session.analysis.success_count,
        "analysis_fallbacks": session.analysis.fallback_count,
        "enhancement_successes": session.enhancement.success_count,
        "enhancement_failures": session.enhancement.failure_count,
        "save_errors": session.persistence.error_count if session.persistence else 0,
    }


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _session, _startup_time, _shutdown_flag, _scan_task

    _startup_time = time.time()
    _shutdown_flag = False
    logger.info(f"Starting {settings.app.name} {settings.app.version}")

    port = int(os.environ.get("PORT", settings.server.port))
    logger.info(f"Configured port: {port}")

    _session = create_session(settings)
    restored = await _session.restore()
    logger.info(f"Session ready ({restored} frames restored)")

    yield

    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    if _scan_task is not None and not _scan_task.done():
        _scan_task.cancel()
        try:
            await _scan_task
        except asyncio.CancelledError:
            pass
    _scan_task = None

    await _session.close()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="FramePerfect",
    description="AI-assisted video frame curation",
    version=settings.app.version,
    lifespan=lifespan,
)


@app.exception_handler(CurationInputError)
async def curation_input_error_handler(request: Request, exc: CurationInputError) -> JSONResponse:
    if isinstance(exc, FrameNotFoundError):
        status_code = 404
    elif isinstance(exc, ScanInProgressError):
        status_code = 409
    else:
        status_code = 400
    return JSONResponse({"error": str(exc)}, status_code=status_code)


@app.exception_handler(ExportError)
async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
    logger.error(f"Export failed: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=500)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "FramePerfect",
        "version": settings.app.version,
        "name": settings.app.name,
        "status": "running",
        "analysis_backend": settings.analysis.backend,
        "enhancement_backend": settings.enhancement.backend,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/stats")
async def stats() -> JSONResponse:
    """Pipeline status and frame counters."""
    return JSONResponse(status_payload(get_session()))


@app.get("/tags")
async def tags() -> JSONResponse:
    """Smart tag suggestions for the filter bar."""
    return JSONResponse({"tags": get_session().smart_chips()})


@app.get("/frames")
async def list_frames(
    min_quality: Optional[FrameQuality] = None,
    shot_type: Optional[ShotType] = None,
    tag: List[str] = Query(default=[]),
    view: ViewMode = ViewMode.ALL,
    sub_view: LibrarySubView = LibrarySubView.ALL,
    include_images: bool = False,
) -> JSONResponse:
    """Visible frames under the given filters, in collection order."""
    spec = FilterSpec(min_quality=min_quality, shot_type=shot_type, active_tags=tag)
    frames = get_session().visible_frames(spec, view_mode=view, sub_view=sub_view)
    return JSONResponse({
        "count": len(frames),
        "frames": [frame_payload(f, include_images) for f in frames],
    })


@app.get("/frames/{frame_id}")
async def get_frame(frame_id: str) -> JSONResponse:
    """One frame including its image payloads."""
    frame = get_session().get_frame(frame_id)
    return JSONResponse(frame_payload(frame, include_images=True))


@app.post("/scan", status_code=202)
async def start_scan(request: ScanRequest) -> JSONResponse:
    """
    Start scanning a video file in the background.

    Returns 409 while another scan runs and 400 if the video cannot be
    opened. Progress is reported by /stats and /ws/stats.
    """
    global _scan_task, _scan_error

    session = get_session()
    if is_scan_running() or session.is_scanning:
        raise ScanInProgressError()

    source = OpenCVVideoSource(request.video_path)
    try:
        metadata = await source.wait_for_metadata()
    except VideoOpenError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    # Another request may have started a scan while metadata was loading;
    # nothing awaits between this check and claiming _scan_task
    if is_scan_running() or session.is_scanning:
        source.close()
        raise ScanInProgressError()

    scan_settings = ScanSettings(range=request.range, interval=request.interval)
    _scan_error = None

    async def run_scan() -> None:
        global _scan_error
        try:
            await session.start_scan(source, scan_settings)
        except Exception as e:
            _scan_error = str(e)
            logger.error(f"Scan failed: {e}")
        finally:
            source.close()

    _scan_task = asyncio.create_task(run_scan(), name="frame_scan")

    return JSONResponse(
        {
            "status": "scanning",
            "duration": round(metadata.duration, 2),
            "scan_range": session.scan_range_label(metadata.duration, request.range),
        },
        status_code=202,
    )


@app.post("/frames/{frame_id}/toggle")
async def toggle_frame(frame_id: str) -> JSONResponse:
    """Flip a frame's keeper flag."""
    frame = get_session().toggle_selection(frame_id)
    return JSONResponse(frame_payload(frame))


@app.post("/selection/clear")
async def clear_selection() -> JSONResponse:
    """Deselect every keeper."""
    return JSONResponse({"deselected": get_session().clear_selection()})


@app.post("/frames/{frame_id}/enhance")
async def enhance_frame(frame_id: str, request: EnhanceRequest) -> JSONResponse:
    """Enhance one frame with combined styles."""
    session = get_session()
    enhanced = await session.enhance_frame(frame_id, request.styles, advice=request.advice)
    return JSONResponse({
        "enhanced": enhanced,
        "frame": frame_payload(session.get_frame(frame_id)),
    })


@app.post("/frames/{frame_id}/save-version")
async def save_version(frame_id: str) -> JSONResponse:
    """Save a frame's enhanced image as a new keeper."""
    version = get_session().save_version(frame_id)
    if version is None:
        return JSONResponse(
            {"error": f"Frame {frame_id} has no enhanced image"},
            status_code=409,
        )
    return JSONResponse(frame_payload(version), status_code=201)


@app.post("/enhance/batch")
async def enhance_batch(request: BatchEnhanceRequest) -> JSONResponse:
    """Enhance every keeper, one frame at a time."""
    session = get_session()
    targets = len(session.store.selected())
    enhanced = await session.enhance_keepers(request.style)
    return JSONResponse({
        "style": request.style.value,
        "targets": targets,
        "enhanced": enhanced,
    })


@app.post("/export")
async def export(request: ExportRequest) -> JSONResponse:
    """Export keepers to a zip bundle on the server."""
    session = get_session()
    output_dir = request.output_dir or settings.export.output_dir
    path = await session.export(request.project_name, output_dir)
    return JSONResponse({
        "path": str(path),
        "keepers": len(session.store.selected()),
    })


@app.delete("/project")
async def delete_project() -> JSONResponse:
    """Discard every frame and the saved project."""
    if is_scan_running():
        raise ScanInProgressError()
    await get_session().reset_project()
    return JSONResponse({"status": "cleared"})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/stats")
async def stats_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time pipeline status."""
    await websocket.accept()
    logger.info("Client connected to /ws/stats")

    try:
        while not _shutdown_flag:
            await websocket.send_json(status_payload(get_session()))
            try:
                # Client messages are ignored; receiving only surfaces disconnects
                await asyncio.wait_for(websocket.receive_text(), timeout=1.0)
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/stats")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "frameperfect.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
