#!/usr/bin/env python3
"""
Curate Video Script
===================

Standalone script that runs the whole curation pipeline on a local video.

This script:
    1. Scans the video at a fixed interval
    2. Waits for every frame to be graded
    3. Optionally enhances every keeper with one style
    4. Exports the keepers as a zip bundle
    5. Reports a final summary

Prerequisites:
    - Install the package: pip install -e .
    - For --backend gemini, set GEMINI_API_KEY

Usage:
    python scripts/curate_video.py holiday.mp4 --project "Summer Vacation"
    python scripts/curate_video.py holiday.mp4 --range q2 --interval 5 --enhance Cinematic
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import Optional

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from frameperfect.capabilities import (
    GeminiAnalysisEngine,
    GeminiEnhancementEngine,
    MockAnalysisEngine,
    MockEnhancementEngine,
)
from frameperfect.errors import CurationInputError, ExportError
from frameperfect.models.filters import ScanRange, ScanSettings
from frameperfect.models.frame import EnhancementStyle
from frameperfect.pipeline import CurationSession
from frameperfect.sampling import FrameSampler, OpenCVVideoSource, VideoOpenError
from frameperfect.store import InMemoryPersistence


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_pipeline(
    video_path: str,
    project_name: str,
    output_dir: str,
    scan_range: ScanRange,
    interval: float,
    max_frames: int,
    backend: str,
    enhance_style: Optional[EnhancementStyle] = None,
) -> dict:
    """
    Run scan -> analysis -> (enhancement) -> export.

    Args:
        video_path: Local video file
        project_name: Export folder name
        output_dir: Directory for the zip bundle
        scan_range: Portion of the video to scan
        interval: Seconds between samples
        max_frames: Hard cap on captured frames
        backend: 'mock' or 'gemini'
        enhance_style: Style applied to every keeper, or None to skip

    Returns:
        Final summary dict
    """
    logger.info("=" * 60)
    logger.info("FramePerfect Curation")
    logger.info("=" * 60)
    logger.info(f"Video: {video_path}")
    logger.info(f"Range: {scan_range.value}, interval: {interval}s, cap: {max_frames}")
    logger.info(f"Backend: {backend}")
    logger.info("=" * 60)

    if backend == "gemini":
        analysis_engine = GeminiAnalysisEngine()
        enhancement_engine = GeminiEnhancementEngine()
    else:
        analysis_engine = MockAnalysisEngine()
        enhancement_engine = MockEnhancementEngine()

    session = CurationSession(
        analysis_engine=analysis_engine,
        enhancement_engine=enhancement_engine,
        gateway=InMemoryPersistence(),
        sampler=FrameSampler(max_frames=max_frames),
    )

    start_time = time.time()
    source = OpenCVVideoSource(video_path)
    try:
        captured = await session.start_scan(
            source,
            ScanSettings(range=scan_range, interval=interval),
            on_progress=lambda p: logger.info(f"Scan progress: {p:.0%}"),
        )
    finally:
        source.close()

    await session.wait_for_analysis()
    stats = session.stats()
    logger.info(
        f"Analysis complete: {stats.analyzed_frames}/{stats.total_frames} graded, "
        f"{stats.keepers} keepers, {session.analysis.fallback_count} fallbacks"
    )

    enhanced = 0
    if enhance_style is not None and stats.keepers > 0:
        enhanced = await session.enhance_keepers(enhance_style)

    archive = await session.export(project_name, output_dir)
    await session.close()

    total_time = time.time() - start_time
    stats = session.stats()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames captured: {captured}")
    logger.info(f"Keepers: {stats.keepers}")
    logger.info(f"Enhanced: {enhanced}")
    logger.info(f"Archive: {archive}")
    logger.info(f"Tags: {', '.join(session.smart_chips()) or '-'}")
    logger.info("=" * 60)

    return {
        "duration": total_time,
        "frames_captured": captured,
        "keepers": stats.keepers,
        "enhanced": enhanced,
        "archive": str(archive),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Scan a video, grade its frames and export the keepers"
    )
    parser.add_argument("video", type=str, help="Path of the video file")
    parser.add_argument(
        "--project",
        type=str,
        default="My Project",
        help="Project name used for the export folder (default: 'My Project')",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=os.environ.get("FRAMEPERFECT_EXPORT_DIR", "./exports"),
        help="Directory for the export archive (default: ./exports)",
    )
    parser.add_argument(
        "--range",
        type=ScanRange,
        default=ScanRange.FULL,
        help="Portion of the video to scan (default: full)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=3.0,
        help="Seconds between samples (default: 3)",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=50,
        help="Hard cap on captured frames (default: 50)",
    )
    parser.add_argument(
        "--backend",
        choices=["mock", "gemini"],
        default="mock",
        help="Analysis/enhancement backend (default: mock)",
    )
    parser.add_argument(
        "--enhance",
        type=EnhancementStyle,
        default=None,
        help="Enhance every keeper with this style before export",
    )

    args = parser.parse_args()

    try:
        result = asyncio.run(run_pipeline(
            video_path=args.video,
            project_name=args.project,
            output_dir=args.output_dir,
            scan_range=args.range,
            interval=args.interval,
            max_frames=args.max_frames,
            backend=args.backend,
            enhance_style=args.enhance,
        ))
    except (VideoOpenError, CurationInputError, ExportError) as e:
        logger.error(f"Curation failed: {e}")
        sys.exit(1)

    sys.exit(0 if result["keepers"] > 0 else 1)


if __name__ == "__main__":
    main()
