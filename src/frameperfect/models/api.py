"""
HTTP Request Bodies
===================

Schemas accepted by the FastAPI endpoints in main.py.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from frameperfect.models.filters import ScanRange
from frameperfect.models.frame import EnhancementStyle


class ScanRequest(BaseModel):
    """Start a scan of a local video file."""

    video_path: str = Field(..., description="Path of the video file on the server")
    range: ScanRange = Field(default=ScanRange.FULL, description="Portion of the video")
    interval: float = Field(default=3.0, gt=0, description="Seconds between samples")


class EnhanceRequest(BaseModel):
    """Enhance one frame with one or more combined styles."""

    styles: List[EnhancementStyle] = Field(
        default_factory=lambda: [EnhancementStyle.RESTORE],
        description="Styles combined in a single request",
    )
    advice: Optional[str] = Field(
        default=None,
        description="Fix suggestions; defaults to the frame's technical advice",
    )


class BatchEnhanceRequest(BaseModel):
    """Enhance every keeper with one style."""

    style: EnhancementStyle = Field(..., description="Style applied to every keeper")


class ExportRequest(BaseModel):
    """Export keepers as a zip bundle."""

    project_name: str = Field(..., description="Project name, used as the folder name")
    output_dir: Optional[str] = Field(
        default=None,
        description="Target directory; defaults to export.output_dir",
    )
