"""
Export Tests
============

Keeper manifest and zip bundle.
"""

import base64
import json
import zipfile

import pytest


@pytest.fixture
def keepers(make_frame):
    """Two keepers (one enhanced) and one rejected frame."""
    from frameperfect.models.frame import EnhancementStyle, FrameQuality

    return [
        make_frame(timestamp=1.5, quality=FrameQuality.GOOD, selected=True),
        make_frame(timestamp=3.0, quality=FrameQuality.FAIR, selected=False),
        make_frame(
            timestamp=12.0,
            quality=FrameQuality.EXCELLENT,
            selected=True,
            enhanced_image_b64="ZW5oYW5jZWQ=",
            applied_enhancements=[EnhancementStyle.CINEMATIC],
        ),
    ]


class TestProjectName:
    """Tests for folder name sanitizing."""

    @pytest.mark.parametrize("name,expected", [
        ("Summer Vacation", "summer_vacation"),
        ("Trip #2 (2024)", "trip__2__2024_"),
        ("ABC", "abc"),
    ])
    def test_sanitize(self, name, expected):
        from frameperfect.export.packager import sanitize_project_name

        assert sanitize_project_name(name) == expected


class TestBuildBundle:
    """Tests for ExportPackager.build_bundle()."""

    def test_two_keepers(self, keepers):
        from frameperfect.export.packager import ExportPackager

        bundle = ExportPackager().build_bundle(keepers, "Summer Vacation")

        assert bundle.folder_name == "summer_vacation"
        assert len(bundle.manifest) == 2
        assert [entry.is_enhanced for entry in bundle.manifest] == [False, True]
        assert sorted(bundle.files) == [
            "frame_1.50s_Good.jpg",
            "frame_12.00s_Excellent.png",
        ]
        assert bundle.files["frame_12.00s_Excellent.png"] == base64.b64decode("ZW5oYW5jZWQ=")

    def test_manifest_uses_wire_names(self, keepers):
        from frameperfect.export.packager import ExportPackager

        bundle = ExportPackager().build_bundle(keepers, "Trip")
        [first, second] = json.loads(bundle.manifest_json())

        assert set(first) == {
            "id", "timestamp", "quality", "compositionScore", "tags",
            "technicalAdvice", "people", "shotType", "isEnhanced",
        }
        assert first["id"] == keepers[0].id
        assert first["quality"] == "Good"
        assert first["shotType"] == "Candid"
        assert second["isEnhanced"] is True

    def test_ungraded_keeper(self, make_frame):
        from frameperfect.export.packager import ExportPackager

        frame = make_frame(timestamp=2.0, quality=None, selected=True)
        bundle = ExportPackager().build_bundle([frame], "Trip")

        assert list(bundle.files) == ["frame_2.00s_ungraded.jpg"]
        assert bundle.manifest[0].quality is None

    def test_name_collisions_get_suffix(self, make_frame):
        from frameperfect.export.packager import ExportPackager

        frames = [make_frame(timestamp=4.0, selected=True) for _ in range(3)]
        bundle = ExportPackager().build_bundle(frames, "Trip")

        assert sorted(bundle.files) == [
            "frame_4.00s_Good.jpg",
            "frame_4.00s_Good_2.jpg",
            "frame_4.00s_Good_3.jpg",
        ]

    @pytest.mark.parametrize("name", ["", "   "])
    def test_project_name_required(self, keepers, name):
        from frameperfect.errors import ProjectNameRequiredError
        from frameperfect.export.packager import ExportPackager

        with pytest.raises(ProjectNameRequiredError):
            ExportPackager().build_bundle(keepers, name)

    def test_no_keepers(self, make_frame):
        from frameperfect.errors import NoKeepersError
        from frameperfect.export.packager import ExportPackager

        with pytest.raises(NoKeepersError):
            ExportPackager().build_bundle([make_frame()], "Trip")

    def test_frames_not_mutated(self, keepers):
        from frameperfect.export.packager import ExportPackager

        before = [frame.model_copy() for frame in keepers]
        ExportPackager().build_bundle(keepers, "Trip")
        assert keepers == before


class TestWriteArchive:
    """Tests for ExportPackager.write_archive()."""

    def test_zip_layout(self, tmp_path, keepers):
        from frameperfect.export.packager import ExportPackager

        packager = ExportPackager()
        bundle = packager.build_bundle(keepers, "Summer Vacation")
        path = packager.write_archive(bundle, str(tmp_path / "out"))

        assert path == tmp_path / "out" / "summer_vacation.zip"
        with zipfile.ZipFile(path) as archive:
            names = sorted(archive.namelist())
            manifest = json.loads(archive.read("summer_vacation/manifest.json"))

        assert names == [
            "summer_vacation/frame_1.50s_Good.jpg",
            "summer_vacation/frame_12.00s_Excellent.png",
            "summer_vacation/manifest.json",
        ]
        assert len(manifest) == 2
