"""
Scene Export

Entry point of an export session: add one or more scenes, then finalize once
to a file or a stream.

Usage:
    export = SceneExport(host)
    flawless = export.add_scene(roots, "Main")
    ok = await export.save_to_file("scene.glb")

``add_scene`` returns False when parts of the scene were not converted
exactly; the document may still be written. Attach a ``CollectingHandler``
to find out what went wrong.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Dict, Generator, List, Optional, Sequence, Union

from .errors import ExportCancelledError
from .host import EnvironmentProvider, SceneHost
from .logs import CollectingHandler
from .materials import ShadingConfig
from .scheduler import CancellationToken, DeferAgent, budgeted, defer_agent_for, run_async, run_to_completion
from .settings import ExportSettings, SceneExportSettings
from .validator import ValidationReport, validate_gltf
from .walker import SceneWalker
from .writer import GltfWriter

logger = logging.getLogger(__name__)

SKYBOX_MATERIAL_NAME = "Skybox"


class SceneExport:
    """One export session over a host scene graph"""

    def __init__(self, host: SceneHost, settings: Optional[ExportSettings] = None,
                 scene_settings: Optional[SceneExportSettings] = None,
                 defer_agent: Optional[DeferAgent] = None):
        self.host = host
        self.scene_settings = scene_settings or SceneExportSettings()
        self.writer = GltfWriter(settings, host)
        self.defer_agent = defer_agent or defer_agent_for(self.scene_settings.time_budget)
        self.walker: Optional[SceneWalker] = None
        self._skybox_exported = False
        self.cancelled = False

    def add_scene(self, roots: Sequence[Any], name: Optional[str] = None,
                  token: Optional[CancellationToken] = None) -> bool:
        """Add a scene in one go. Returns True if it was converted flawlessly."""
        return run_to_completion(self.iter_add_scene(roots, name, token))

    async def add_scene_async(self, roots: Sequence[Any], name: Optional[str] = None,
                              token: Optional[CancellationToken] = None) -> bool:
        """Add a scene, returning to the event loop whenever the time budget is spent"""
        return await run_async(self.iter_add_scene(roots, name, token))

    def iter_add_scene(self, roots: Sequence[Any], name: Optional[str] = None,
                       token: Optional[CancellationToken] = None) -> Generator[None, None, bool]:
        """Step generator form of ``add_scene``; yields at quantum boundaries"""
        self.writer.certify_not_disposed()
        self.walker = SceneWalker(self.writer, self.host, self.scene_settings)

        try:
            nodes, success = yield from budgeted(self.walker.iter_walk(roots), self.defer_agent, token)
        except ExportCancelledError:
            logger.warning("Scene '%s' export cancelled after %d nodes", name, self.walker.visited)
            # Nodes emitted so far have no scene; the session cannot be finalized
            self.cancelled = True
            self.writer.dispose()
            return False

        extras: Dict[str, Any] = {}
        if isinstance(self.host, EnvironmentProvider):
            light_settings = self.host.get_light_settings()
            if light_settings is not None:
                extras.update(light_settings.to_extras())

        if nodes:
            self.writer.add_scene(nodes, name, extras)
        else:
            logger.warning("Scene '%s' has no exportable nodes", name)

        success = self._export_skybox_material() and success
        return success

    def _export_skybox_material(self) -> bool:
        if self._skybox_exported or not isinstance(self.host, EnvironmentProvider):
            return True
        skybox = self.host.get_skybox()
        if skybox is None:
            return True
        self._skybox_exported = True
        try:
            self.writer.add_material(ShadingConfig(name=SKYBOX_MATERIAL_NAME, unlit=True, skybox=skybox))
        except Exception as e:
            logger.error("Skybox material could not be exported: %s", e)
            return False
        return True

    async def save_to_file(self, path: Union[str, Path],
                           token: Optional[CancellationToken] = None) -> bool:
        if self.cancelled:
            logger.warning("Export to %s refused, the session was cancelled", path)
            return False
        return await self.writer.save_to_file(path, token)

    async def save_to_stream(self, stream: BinaryIO,
                             token: Optional[CancellationToken] = None) -> bool:
        if self.cancelled:
            logger.warning("Export to stream refused, the session was cancelled")
            return False
        return await self.writer.save_to_stream(stream, token)


# ============================================================================
# Reports
# ============================================================================

@dataclass
class ExportReport:
    """Outcome of a complete export (scene + finalize)"""
    success: bool = False
    flawless: bool = False
    output_path: str = ""
    duration: float = 0.0

    stats: Dict[str, Any] = field(default_factory=dict)
    validation: Optional[ValidationReport] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "flawless": self.flawless,
            "output_path": self.output_path,
            "duration": round(self.duration, 3),
            "stats": self.stats,
            "validation": self.validation.to_dict() if self.validation else None,
            "warnings": self.warnings,
            "errors": self.errors,
        }

    def summary(self) -> str:
        lines = [
            "Export Report",
            "=============",
            f"Output: {self.output_path}",
            f"Status: {'SUCCESS' if self.success else 'FAILED'}"
            + ("" if self.flawless or not self.success else " (with issues)"),
            f"Time:   {self.duration:.2f}s",
        ]
        if self.stats:
            lines.append("\nDocument:")
            for key, value in self.stats.items():
                lines.append(f"  {key}: {value}")
        if self.validation:
            lines.append(f"\nValidation: {'PASSED' if self.validation.valid else 'FAILED'}")
            lines.append(f"  Errors: {self.validation.error_count}, Warnings: {self.validation.warning_count}")
        if self.warnings:
            lines.append(f"\nWarnings ({len(self.warnings)}):")
            for w in self.warnings[:10]:
                lines.append(f"  - {w}")
            if len(self.warnings) > 10:
                lines.append(f"  ... and {len(self.warnings) - 10} more")
        if self.errors:
            lines.append(f"\nErrors ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  - {e}")
        return "\n".join(lines)


def _document_stats(writer: GltfWriter) -> Dict[str, Any]:
    doc = writer.document
    return {
        "nodes": len(doc.nodes),
        "meshes": len(doc.meshes),
        "materials": len(doc.materials),
        "textures": len(doc.textures),
        "cameras": len(doc.cameras),
        "lights": len(doc.lights),
        "buffer_bytes": len(writer.packer),
        "digest": writer.packer.digest(),
    }


async def export_scene(host: SceneHost, roots: Sequence[Any], output_path: Union[str, Path],
                       name: Optional[str] = None,
                       settings: Optional[ExportSettings] = None,
                       scene_settings: Optional[SceneExportSettings] = None,
                       validate: bool = True,
                       token: Optional[CancellationToken] = None) -> ExportReport:
    """
    Export a scene to a .glb/.gltf file and collect a report.

    Args:
        host: scene host providing the hierarchy and resources
        roots: root objects of the scene
        output_path: target file (.glb or .gltf, see ExportSettings.format)
        name: scene name
        validate: re-read and validate the written file

    Returns:
        ExportReport with document stats, collected warnings and errors
    """
    report = ExportReport(output_path=str(output_path))
    start = time.perf_counter()

    with CollectingHandler() as log:
        export = SceneExport(host, settings, scene_settings)
        report.flawless = await export.add_scene_async(roots, name, token)
        if not export.cancelled:
            report.stats = _document_stats(export.writer)
            report.success = await export.save_to_file(output_path, token)

    report.warnings = log.warnings
    report.errors = log.errors

    if report.success and validate:
        report.validation = validate_gltf(str(output_path))
        if not report.validation.valid:
            report.success = False

    report.duration = time.perf_counter() - start
    return report
