"""
Export Packager
===============

Turns the keeper subset into a manifest plus an image bundle.

Bundle Layout (zip):
    <project_folder>/manifest.json
    <project_folder>/frame_<timestamp:.2f>s_<quality|ungraded>.<ext>

Manifest Entry:
    {
        "id": "...",
        "timestamp": 12.0,
        "quality": "Excellent",
        "compositionScore": 8.5,
        "tags": ["Beach"],
        "technicalAdvice": "...",
        "people": ["Dad"],
        "shotType": "Candid",
        "isEnhanced": true
    }

Design Rules:
    - Validate project name and keepers before writing anything
    - Use the enhanced image when present, else the original
    - Never mutate frames
"""

import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from frameperfect.errors import ExportError, NoKeepersError, ProjectNameRequiredError
from frameperfect.models.frame import Frame, ShotType
from frameperfect.sampling.image_codec import ImageDecodeError, image_extension, payload_bytes


logger = logging.getLogger(__name__)


DEFAULT_FOLDER_NAME = "frameperfect_export"
MANIFEST_NAME = "manifest.json"


class ManifestEntry(BaseModel):
    """One keeper in the export manifest."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    timestamp: float
    quality: Optional[str] = None
    composition_score: Optional[float] = Field(default=None, alias="compositionScore")
    tags: Optional[List[str]] = None
    technical_advice: Optional[str] = Field(default=None, alias="technicalAdvice")
    people: Optional[List[str]] = None
    shot_type: Optional[ShotType] = Field(default=None, alias="shotType")
    is_enhanced: bool = Field(default=False, alias="isEnhanced")

    @classmethod
    def from_frame(cls, frame: Frame) -> "ManifestEntry":
        analysis = frame.analysis
        return cls(
            id=frame.id,
            timestamp=frame.timestamp,
            quality=analysis.quality.value if analysis else None,
            composition_score=analysis.composition_score if analysis else None,
            tags=list(analysis.tags) if analysis else None,
            technical_advice=analysis.technical_advice if analysis else None,
            people=list(analysis.people) if analysis else None,
            shot_type=analysis.shot_type if analysis else None,
            is_enhanced=frame.is_enhanced,
        )


@dataclass
class ExportBundle:
    """
    In-memory export bundle.

    Attributes:
        folder_name: Sanitized project folder name
        manifest: One entry per keeper, in collection order
        files: Image file name -> image bytes
    """

    folder_name: str
    manifest: List[ManifestEntry] = field(default_factory=list)
    files: Dict[str, bytes] = field(default_factory=dict)

    def manifest_json(self) -> str:
        return json.dumps(
            [entry.model_dump(mode="json", by_alias=True) for entry in self.manifest],
            indent=2,
        )


def sanitize_project_name(project_name: str) -> str:
    """Lower-case folder name with non-alphanumerics replaced by '_'."""
    safe = re.sub(r"[^a-z0-9]", "_", project_name.strip(), flags=re.IGNORECASE).lower()
    return safe or DEFAULT_FOLDER_NAME


def image_file_name(frame: Frame) -> str:
    """File name of a keeper's image: frame_<t:.2f>s_<quality|ungraded>.<ext>"""
    quality = frame.analysis.quality.value if frame.analysis else "ungraded"
    payload = frame.enhanced_image_b64 or frame.image_b64
    return f"frame_{frame.timestamp:.2f}s_{quality}.{image_extension(payload)}"


def _unique_name(name: str, taken: Dict[str, bytes]) -> str:
    if name not in taken:
        return name
    stem, _, ext = name.rpartition(".")
    n = 2
    while f"{stem}_{n}.{ext}" in taken:
        n += 1
    return f"{stem}_{n}.{ext}"


class ExportPackager:
    """
    Builds and writes keeper bundles.

    Example:
        packager = ExportPackager()
        bundle = packager.build_bundle(store.get_all(), "Summer Vacation")
        path = packager.write_archive(bundle, "./exports")
    """

    def build_bundle(self, frames: Iterable[Frame], project_name: str) -> ExportBundle:
        """
        Build the manifest and image files for the keepers.

        Raises:
            ProjectNameRequiredError: If the project name is blank
            NoKeepersError: If no frame is selected
            ExportError: If a keeper's image payload is unreadable
        """
        if not project_name or not project_name.strip():
            raise ProjectNameRequiredError()

        keepers = [frame for frame in frames if frame.is_selected]
        if not keepers:
            raise NoKeepersError("export")

        bundle = ExportBundle(folder_name=sanitize_project_name(project_name))
        for frame in keepers:
            payload = frame.enhanced_image_b64 or frame.image_b64
            try:
                data = payload_bytes(payload)
                name = _unique_name(image_file_name(frame), bundle.files)
            except ImageDecodeError as e:
                raise ExportError(f"Unreadable image for frame {frame.id}: {e}") from e
            bundle.files[name] = data
            bundle.manifest.append(ManifestEntry.from_frame(frame))

        return bundle

    def write_archive(self, bundle: ExportBundle, output_dir: str) -> Path:
        """
        Write a bundle as `<output_dir>/<folder_name>.zip`.

        Returns:
            Path of the written archive

        Raises:
            ExportError: If the archive cannot be written
        """
        out_dir = Path(output_dir)
        archive_path = out_dir / f"{bundle.folder_name}.zip"
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(f"{bundle.folder_name}/{MANIFEST_NAME}", bundle.manifest_json())
                for name, data in bundle.files.items():
                    archive.writestr(f"{bundle.folder_name}/{name}", data)
        except OSError as e:
            raise ExportError(f"Failed to write {archive_path}: {e}") from e

        logger.info(
            f"Exported {len(bundle.manifest)} keepers to {archive_path}"
        )
        return archive_path
