"""Keeper export: manifest plus image bundle."""

from frameperfect.export.packager import ExportBundle, ExportPackager, ManifestEntry

__all__ = ["ExportBundle", "ExportPackager", "ManifestEntry"]
