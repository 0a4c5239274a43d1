import asyncio
import itertools
import logging

import pytest

from conftest import triangle_mesh
from gltf_export.errors import WriterDisposedError
from gltf_export.export import ExportReport, SceneExport, export_scene
from gltf_export.logs import CollectingHandler
from gltf_export.scene import SceneObject
from gltf_export.scheduler import CancellationToken, TimeBudgetDeferAgent
from gltf_export.settings import (
    ENV_FORMAT,
    ENV_LAYER_MASK,
    ENV_ONLY_ACTIVE,
    ENV_TIME_BUDGET_MS,
    ExportSettings,
    GltfFormat,
    SceneExportSettings,
    format_for_path,
)


def test_export_scene_report(tmp_path, host, simple_scene):
    path = tmp_path / "scene.glb"

    report = asyncio.run(export_scene(host, [simple_scene], path, name="Main"))

    assert report.success
    assert report.flawless
    assert report.validation.valid
    assert report.stats["nodes"] == 4
    assert report.stats["materials"] == 2
    assert len(report.stats["digest"]) == 64
    assert report.warnings == [] and report.errors == []
    data = report.to_dict()
    assert data["output_path"] == str(path)
    assert "SUCCESS" in report.summary()


def test_report_collects_problems(tmp_path, host):
    root = SceneObject("Root", mesh=triangle_mesh(), materials=["bogus"])

    report = asyncio.run(export_scene(host, [root], tmp_path / "scene.glb"))

    assert report.success
    assert not report.flawless
    assert report.errors
    assert "(with issues)" in report.summary()


def test_report_cancelled(tmp_path, host, simple_scene):
    token = CancellationToken()
    token.cancel()

    report = asyncio.run(export_scene(host, [simple_scene], tmp_path / "scene.glb", token=token))

    assert not report.success
    assert report.validation is None
    assert not (tmp_path / "scene.glb").exists()


def test_cancelled_session_refuses_to_save(tmp_path, host, collected):
    roots = [SceneObject(f"C{i}", mesh=triangle_mesh()) for i in range(5)]
    token = CancellationToken()
    # Ticking clock: every node ends a quantum
    export = SceneExport(host, defer_agent=TimeBudgetDeferAgent(0.0, clock=itertools.count().__next__))
    steps = export.iter_add_scene(roots, "Main", token)
    next(steps)
    next(steps)
    token.cancel()

    with pytest.raises(StopIteration) as stop:
        next(steps)

    assert stop.value.value is False
    assert export.cancelled
    assert not asyncio.run(export.save_to_file(tmp_path / "scene.glb"))
    assert list(tmp_path.iterdir()) == []
    assert any("refused" in m for m in collected.warnings)
    with pytest.raises(WriterDisposedError):
        export.add_scene(roots)


def test_empty_scene_not_added(host, collected):
    export = SceneExport(host)
    editor_only = SceneObject("Gizmo", editor_only=True)

    assert export.add_scene([editor_only], "Empty")
    assert export.writer.document.scenes == []
    assert any("no exportable nodes" in m for m in collected.warnings)


def test_multiple_scenes_share_resources(host, red):
    mesh = triangle_mesh()
    export = SceneExport(host)

    export.add_scene([SceneObject("A", mesh=mesh, materials=[red])], "First")
    export.add_scene([SceneObject("B", mesh=mesh, materials=[red])], "Second")

    doc = export.writer.document
    assert [s.name for s in doc.scenes] == ["First", "Second"]
    assert doc.scene == 0
    assert len(doc.meshes) == 1


def test_add_scene_after_save_raises(tmp_path, host, simple_scene):
    export = SceneExport(host)
    asyncio.run(export.save_to_file(tmp_path / "scene.glb"))

    with pytest.raises(WriterDisposedError):
        export.add_scene([simple_scene])


def test_summary_truncates_warnings():
    report = ExportReport(success=True, warnings=[f"w{i}" for i in range(12)])

    assert "... and 2 more" in report.summary()


def test_format_for_path():
    assert format_for_path("a.GLB") == GltfFormat.BINARY
    assert format_for_path("a.gltf") == GltfFormat.JSON
    assert format_for_path("a.obj") is None
    assert ExportSettings().resolve_format("a.obj") == GltfFormat.BINARY
    assert ExportSettings(format=GltfFormat.JSON).resolve_format("a.glb") == GltfFormat.JSON


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv(ENV_FORMAT, "gltf")
    monkeypatch.setenv(ENV_LAYER_MASK, "0x5")
    monkeypatch.setenv(ENV_ONLY_ACTIVE, "false")
    monkeypatch.setenv(ENV_TIME_BUDGET_MS, "8")

    settings = ExportSettings.from_env()
    scene_settings = SceneExportSettings.from_env()

    assert settings.format == GltfFormat.JSON
    assert scene_settings.layer_mask == 0x5
    assert scene_settings.includes_layer(2)
    assert not scene_settings.includes_layer(1)
    assert scene_settings.only_active_in_hierarchy is False
    assert scene_settings.time_budget == pytest.approx(0.008)


def test_collecting_handler_restores_level():
    logger = logging.getLogger("gltf_export")
    before = logger.level

    with CollectingHandler(level=logging.INFO) as log:
        logging.getLogger("gltf_export.walker").info("hello")
        assert logger.level == logging.INFO
    assert log.records[0].getMessage() == "hello"
    assert not log.flawless
    log.clear()
    assert log.flawless
    assert logger.level == before
